"""Decides which Salesforce API family a SOQL query belongs to"""
import logging
from typing import FrozenSet, Optional

logger = logging.getLogger(__name__)

# Objects that only exist in the Tooling API schema. Matching is a plain
# case-insensitive substring scan, so a name inside a literal, a field list
# or a longer identifier (ApexClassMember, ApexClassOrTrigger.Name) also
# counts as a hit.
TOOLING_OBJECTS: FrozenSet[str] = frozenset({
    "AsyncApexJob",
    "ApexClass",
    "ApexTrigger",
    "ApexPage",
    "ApexComponent",
    "ApexLog",
    "ApexCodeCoverage",
    "ApexCodeCoverageAggregate",
    "ApexOrgWideCoverage",
    "ApexTestQueueItem",
    "ApexTestResult",
    "ApexTestRunResult",
    "ApexExecutionOverlayResult",
    "SymbolTable",
    "TraceFlag",
    "DebugLevel",
    "MetadataContainer",
    "ContainerAsyncRequest",
})

_LOWERED = tuple(sorted(name.lower() for name in TOOLING_OBJECTS))


def find_tooling_object(soql: str) -> Optional[str]:
    """Return the first tooling object name found in ``soql`` (lowercased), if any."""
    text = soql.lower()
    for name in _LOWERED:
        if name in text:
            return name
    return None


def is_tooling_query(soql: str) -> bool:
    """True when the query mentions any Tooling-only object."""
    match = find_tooling_object(soql)
    if match:
        logger.debug("Routing query to Tooling API (matched %s)", match)
    return match is not None
