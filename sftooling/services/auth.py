"""Credential resolution and access token lifecycle

Every token acquisition walks the strategies in a fixed order:

1. reuse a session already held by the locally installed Salesforce CLI
2. JWT bearer assertion signed with the configured private key
3. username/password (security token appended to the password)

Only "CLI unavailable" falls through to the next strategy. A JWT or password
exchange failure is final for that call. Tokens are cached in a single slot
for a flat TTL; there is no refresh grant, an expired token is simply
replaced by a fresh authentication that starts again at the CLI.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Protocol, Tuple, Union

import httpx
import jwt

from sftooling.config import SalesforceConfig
from sftooling.services.exceptions import (
    AuthenticationError,
    CliSessionUnavailable,
    ConfigurationError,
)
from sftooling.utils.logging import mask_secret

logger = logging.getLogger(__name__)

TOKEN_PATH = "/services/oauth2/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
PASSWORD_GRANT = "password"

CLI_ORG_GROUPS = ("nonScratchOrgs", "scratchOrgs", "sandboxes", "devHubs", "other")
CONNECTED_STATUSES = ("Connected", "Active")

MISSING_CREDENTIALS_MESSAGE = (
    "No Salesforce authentication method is available. Configure one of:\n"
    "- SF CLI session: log in with `sf org login web` (optionally set SF_TARGET_ORG)\n"
    "- JWT bearer flow: SF_INSTANCE_URL, SF_CLIENT_ID, SF_PRIVATE_KEY and SF_SUBJECT\n"
    "- Username/password flow: SF_INSTANCE_URL, SF_CLIENT_ID, SF_USERNAME and SF_PASSWORD "
    "(SF_CLIENT_SECRET and SF_SECURITY_TOKEN optional)"
)


# --- Strategies ---------------------------------------------------------------

@dataclass(frozen=True)
class CliSessionStrategy:
    target_org: Optional[str] = None

    name: ClassVar[str] = "cli_session"


@dataclass(frozen=True)
class JwtBearerStrategy:
    instance_url: str
    client_id: str
    private_key: str
    subject: str
    assertion_lifetime: int = 300

    name: ClassVar[str] = "jwt_bearer"


@dataclass(frozen=True)
class UsernamePasswordStrategy:
    instance_url: str
    client_id: str
    username: str
    password: str
    client_secret: Optional[str] = None

    name: ClassVar[str] = "username_password"


AuthStrategy = Union[CliSessionStrategy, JwtBearerStrategy, UsernamePasswordStrategy]


def resolve_strategies(config: SalesforceConfig) -> List[AuthStrategy]:
    """Ordered list of strategies the configuration can satisfy.

    The CLI strategy needs nothing from the configuration and always comes
    first. JWT and password entries appear only when all their required
    fields are present.
    """
    strategies: List[AuthStrategy] = [CliSessionStrategy(target_org=config.target_org)]

    if config.has_jwt_credentials:
        strategies.append(JwtBearerStrategy(
            instance_url=config.instance_url,
            client_id=config.client_id,
            private_key=config.resolved_private_key,
            subject=config.subject,
            assertion_lifetime=config.jwt_assertion_lifetime_seconds,
        ))

    if config.has_password_credentials:
        strategies.append(UsernamePasswordStrategy(
            instance_url=config.instance_url,
            client_id=config.client_id,
            username=config.username,
            password=config.password + (config.security_token or ""),
            client_secret=config.client_secret,
        ))

    return strategies


def build_jwt_assertion(strategy: JwtBearerStrategy, now: float) -> str:
    """Sign ``{iss, sub, aud, exp}`` with RS256 using the configured private key."""
    claims = {
        "iss": strategy.client_id,
        "sub": strategy.subject,
        "aud": strategy.instance_url,
        "exp": int(now) + strategy.assertion_lifetime,
    }
    try:
        return jwt.encode(claims, strategy.private_key, algorithm="RS256", headers={"typ": "JWT"})
    except (ValueError, TypeError, jwt.PyJWTError) as exc:
        raise AuthenticationError(
            f"Could not sign JWT assertion with the configured private key: {exc}",
            strategy=JwtBearerStrategy.name,
        ) from exc


# --- Session token and cache --------------------------------------------------

@dataclass(frozen=True)
class SessionToken:
    access_token: str
    instance_url: str
    expires_at: float
    strategy: str

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class TokenCache:
    """Single slot holding the current session token.

    A token is only ever stored or cleared as a whole, so readers never see
    a token from one session paired with the instance URL of another.
    """

    def __init__(self):
        self._token: Optional[SessionToken] = None

    def get(self, now: float) -> Optional[SessionToken]:
        token = self._token
        if token is not None and token.is_valid(now):
            return token
        return None

    def peek(self) -> Optional[SessionToken]:
        return self._token

    def store(self, token: SessionToken) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


# --- Salesforce CLI session source -------------------------------------------

@dataclass(frozen=True)
class CliOrg:
    username: str
    aliases: Tuple[str, ...] = ()
    access_token: Optional[str] = None
    instance_url: Optional[str] = None
    connected_status: Optional[str] = None
    is_default: bool = False

    @property
    def is_connected(self) -> bool:
        return self.connected_status in CONNECTED_STATUSES

    def matches(self, target: str) -> bool:
        return target == self.username or target in self.aliases


def _org_from_entry(entry: Dict[str, Any]) -> Optional[CliOrg]:
    username = entry.get("username")
    if not username:
        return None

    aliases = entry.get("aliases") or []
    if isinstance(aliases, str):
        aliases = [aliases]
    if entry.get("alias") and entry["alias"] not in aliases:
        aliases = [entry["alias"], *aliases]

    return CliOrg(
        username=username,
        aliases=tuple(aliases),
        access_token=entry.get("accessToken"),
        instance_url=entry.get("instanceUrl"),
        connected_status=entry.get("connectedStatus") or entry.get("status"),
        is_default=bool(entry.get("isDefaultUsername")),
    )


def parse_org_list(payload: Any) -> List[CliOrg]:
    """Parse ``sf org list --json`` output into orgs, de-duplicated by username."""
    if not isinstance(payload, dict) or not isinstance(payload.get("result"), dict):
        raise CliSessionUnavailable("SF CLI returned an unexpected org list payload")

    orgs: List[CliOrg] = []
    seen = set()
    for group in CLI_ORG_GROUPS:
        for entry in payload["result"].get(group) or []:
            if not isinstance(entry, dict):
                continue
            org = _org_from_entry(entry)
            if org is None or org.username in seen:
                continue
            seen.add(org.username)
            orgs.append(org)
    return orgs


def parse_org_display(payload: Any) -> CliOrg:
    """Parse ``sf org display --json`` output."""
    result = payload.get("result") if isinstance(payload, dict) else None
    org = _org_from_entry(result) if isinstance(result, dict) else None
    if org is None:
        raise CliSessionUnavailable("SF CLI returned an unexpected org display payload")
    return org


def select_cli_org(orgs: List[CliOrg], target_org: Optional[str] = None) -> CliOrg:
    """Pick the org whose session should be reused.

    With ``target_org`` the alias/username must match and the org must be
    connected; otherwise the CLI has no usable candidate and the next
    strategy is tried.
    Without it the default org wins if connected, else the first connected org.
    """
    if target_org:
        match = next((org for org in orgs if org.matches(target_org)), None)
        if match is None:
            raise CliSessionUnavailable(f"Org with alias or username '{target_org}' not found in SF CLI")
        if not match.is_connected:
            raise CliSessionUnavailable(
                f"SF CLI org '{target_org}' is not connected (status: {match.connected_status or 'unknown'}). "
                f"Re-authenticate with `sf org login web --alias {target_org}`"
            )
        return match

    connected = [org for org in orgs if org.is_connected]
    for org in connected:
        if org.is_default:
            return org
    if connected:
        return connected[0]
    raise CliSessionUnavailable("SF CLI has no connected org")


class SessionSource(Protocol):
    """Something that can enumerate locally authenticated Salesforce orgs."""

    async def list_orgs(self) -> List[CliOrg]:
        ...

    async def display_org(self, username: str) -> CliOrg:
        ...


class SfCliSessionSource:
    """Reads sessions from the ``sf`` command line tool."""

    def __init__(self, command: str = "sf", timeout: float = 60.0):
        self.command = command
        self.timeout = timeout

    async def _run(self, *args: str) -> Any:
        printable = " ".join((self.command,) + args)
        try:
            process = await asyncio.create_subprocess_exec(
                self.command,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CliSessionUnavailable(f"Salesforce CLI '{self.command}' could not be started: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise CliSessionUnavailable(f"`{printable}` timed out after {self.timeout}s") from exc

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or stdout.decode(errors="replace").strip()
            raise CliSessionUnavailable(f"`{printable}` exited with {process.returncode}: {detail[:300]}")

        try:
            return json.loads(stdout)
        except ValueError as exc:
            raise CliSessionUnavailable(f"`{printable}` did not return valid JSON") from exc

    async def list_orgs(self) -> List[CliOrg]:
        return parse_org_list(await self._run("org", "list", "--json"))

    async def display_org(self, username: str) -> CliOrg:
        return parse_org_display(await self._run("org", "display", "--target-org", username, "--json"))


# --- Token provider -----------------------------------------------------------

def _describe_oauth_error(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:300] or response.reason_phrase
    if isinstance(payload, dict):
        error = payload.get("error")
        description = payload.get("error_description")
        if error and description:
            return f"{error}: {description}"
        return description or error or json.dumps(payload)
    return json.dumps(payload)


class TokenProvider:
    """Obtains and caches a bearer token plus instance URL for one org.

    Args:
        config: credentials and runtime settings
        http_client: client used for the OAuth token endpoint; created from
            the configured timeout when omitted
        session_source: where CLI sessions come from; defaults to the ``sf`` binary
        clock: wall clock in seconds, injectable for tests
    """

    def __init__(
        self,
        config: SalesforceConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        session_source: Optional[SessionSource] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.request_timeout_seconds)
        self._session_source = session_source or SfCliSessionSource(
            command=config.cli_command, timeout=config.cli_timeout_seconds
        )
        self._clock = clock
        self._cache = TokenCache()
        self._strategies = resolve_strategies(config)

    @property
    def session(self) -> Optional[SessionToken]:
        """Last stored session, valid or not."""
        return self._cache.peek()

    async def get_session(self) -> SessionToken:
        """Cached session while unexpired, otherwise a freshly authenticated one."""
        cached = self._cache.get(self._clock())
        if cached is not None:
            logger.debug("Reusing cached Salesforce token from %s", cached.strategy)
            return cached

        if self._cache.peek() is not None:
            logger.info("Cached Salesforce token expired, re-authenticating")

        try:
            session = await self._authenticate()
        except Exception:
            self._cache.clear()
            raise

        self._cache.store(session)
        logger.info(
            "Authenticated to %s via %s (token %s)",
            session.instance_url, session.strategy, mask_secret(session.access_token),
        )
        return session

    async def get_access_token(self) -> str:
        session = await self.get_session()
        return session.access_token

    def get_instance_url(self) -> str:
        """Last known instance URL, or the configured one before any login."""
        session = self._cache.peek()
        if session is not None:
            return session.instance_url
        return self.config.instance_url.rstrip("/")

    def invalidate(self) -> None:
        """Forget the cached session so the next call authenticates again."""
        self._cache.clear()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -- strategies --

    async def _authenticate(self) -> SessionToken:
        cli_strategy, *fallbacks = self._strategies

        try:
            return await self._from_cli(cli_strategy)
        except CliSessionUnavailable as exc:
            if cli_strategy.target_org:
                logger.warning("SF CLI session for target org '%s' unavailable: %s", cli_strategy.target_org, exc)
            else:
                logger.info("SF CLI session unavailable: %s", exc)

        if not fallbacks:
            raise ConfigurationError(MISSING_CREDENTIALS_MESSAGE)

        strategy = fallbacks[0]
        if isinstance(strategy, JwtBearerStrategy):
            return await self._from_jwt(strategy)
        return await self._from_password(strategy)

    async def _from_cli(self, strategy: CliSessionStrategy) -> SessionToken:
        orgs = await self._session_source.list_orgs()
        org = select_cli_org(orgs, strategy.target_org)

        if not org.access_token or not org.instance_url:
            org = await self._session_source.display_org(org.username)
            if not org.access_token or not org.instance_url:
                raise CliSessionUnavailable(f"SF CLI returned no access token for '{org.username}'")

        logger.info("Using SF CLI session for %s", org.username)
        return self._new_session(org.access_token, org.instance_url, strategy.name)

    async def _from_jwt(self, strategy: JwtBearerStrategy) -> SessionToken:
        logger.info("Authenticating with JWT bearer flow as %s", strategy.subject)
        assertion = build_jwt_assertion(strategy, self._clock())
        return await self._exchange(strategy.name, strategy.instance_url, {
            "grant_type": JWT_BEARER_GRANT,
            "assertion": assertion,
        })

    async def _from_password(self, strategy: UsernamePasswordStrategy) -> SessionToken:
        logger.info("Authenticating with username/password flow as %s", strategy.username)
        data = {
            "grant_type": PASSWORD_GRANT,
            "client_id": strategy.client_id,
            "username": strategy.username,
            "password": strategy.password,
        }
        if strategy.client_secret:
            data["client_secret"] = strategy.client_secret
        return await self._exchange(strategy.name, strategy.instance_url, data)

    async def _exchange(self, strategy_name: str, instance_url: str, data: Dict[str, str]) -> SessionToken:
        url = instance_url.rstrip("/") + TOKEN_PATH
        # Network errors propagate untouched; callers own retry policy.
        response = await self._http.post(url, data=data)

        if response.is_error:
            raise AuthenticationError(
                f"Salesforce token request failed ({response.status_code}): {_describe_oauth_error(response)}",
                strategy=strategy_name,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthenticationError("Salesforce token response was not JSON", strategy=strategy_name) from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise AuthenticationError("Salesforce token response had no access_token", strategy=strategy_name)

        return self._new_session(access_token, payload.get("instance_url") or instance_url, strategy_name)

    def _new_session(self, access_token: str, instance_url: str, strategy_name: str) -> SessionToken:
        return SessionToken(
            access_token=access_token,
            instance_url=instance_url.rstrip("/"),
            expires_at=self._clock() + self.config.token_ttl_seconds,
            strategy=strategy_name,
        )
