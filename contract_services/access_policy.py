"""
contract_services.access_policy -- Role-based access to contract operations.

Responsibility:
    Map a caller's (role, organization) to the operations it may perform
    and to the slice of contracts it may see.  Pure functions; no I/O
    besides logging denials.

Architecture position:
    Services layer.  Called by ContractOperations before any read is
    returned or any mutation is attempted.

Invariants:
    - Unknown roles hold no capability; every operation they attempt is
      denied explicitly (PermissionDeniedError), never answered with an
      empty result.
    - Contractor and landfill-operator callers are confined to their own
      organization in list requests, whatever filter they supplied.
    - Ticket binding additionally requires that the caller's organization
      created the contract.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum

from contract_kernel.domain.dtos import ContractFilter, ContractInfo
from contract_kernel.domain.principal import Principal, UserRole
from contract_kernel.exceptions import PermissionDeniedError
from contract_kernel.logging_config import get_logger

logger = get_logger("services.access_policy")


class Capability(str, Enum):
    CREATE_CONTRACT = "create_contract"
    READ_ALL = "read_all"
    READ_OWN_ONLY = "read_own_only"
    BIND_TICKET = "bind_ticket"
    RECORD_USAGE = "record_usage"
    DELETE_CONTRACT = "delete_contract"


class ReadScope(str, Enum):
    """Which contracts a caller may see."""

    ALL = "all"
    CONTRACTOR = "contractor"
    LANDFILL = "landfill"
    NONE = "none"


# role -> capabilities granted
ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    UserRole.KGU_ZKH_ADMIN.value: frozenset(
        {
            Capability.CREATE_CONTRACT,
            Capability.READ_ALL,
            Capability.BIND_TICKET,
            Capability.RECORD_USAGE,
            Capability.DELETE_CONTRACT,
        }
    ),
    UserRole.AKIMAT_ADMIN.value: frozenset(
        {Capability.READ_ALL, Capability.RECORD_USAGE}
    ),
    UserRole.CONTRACTOR_ADMIN.value: frozenset({Capability.READ_OWN_ONLY}),
    UserRole.TOO_ADMIN.value: frozenset({Capability.READ_OWN_ONLY}),
}


def capabilities_for(role: str) -> frozenset[Capability]:
    return ROLE_CAPABILITIES.get(role, frozenset())


def check_capability(principal: Principal, capability: Capability) -> tuple[bool, str]:
    """Check whether the principal's role grants a capability.

    Returns:
        (allowed, reason). reason is empty when allowed, or a short message
        when denied.
    """
    if capability in capabilities_for(principal.role):
        return (True, "")
    if principal.role not in ROLE_CAPABILITIES:
        return (False, f"unrecognized role '{principal.role}'")
    return (False, f"capability '{capability.value}' not granted to role '{principal.role}'")


def _deny(principal: Principal, action: str, reason: str) -> PermissionDeniedError:
    logger.warning(
        "access_denied",
        extra={
            "action": action,
            "role": principal.role,
            "organization_id": str(principal.organization_id),
            "reason": reason,
        },
    )
    return PermissionDeniedError(principal.role, action, reason)


def require_capability(principal: Principal, capability: Capability) -> None:
    """Raise PermissionDeniedError unless the role grants ``capability``."""
    allowed, reason = check_capability(principal, capability)
    if not allowed:
        raise _deny(principal, capability.value, reason)


def read_scope(principal: Principal) -> ReadScope:
    caps = capabilities_for(principal.role)
    if Capability.READ_ALL in caps:
        return ReadScope.ALL
    if Capability.READ_OWN_ONLY in caps:
        if principal.is_contractor:
            return ReadScope.CONTRACTOR
        if principal.is_landfill_operator:
            return ReadScope.LANDFILL
    return ReadScope.NONE


def require_read(principal: Principal) -> ReadScope:
    """Return the caller's read scope, raising if it has none."""
    scope = read_scope(principal)
    if scope == ReadScope.NONE:
        _, reason = check_capability(principal, Capability.READ_OWN_ONLY)
        raise _deny(principal, "read_contracts", reason)
    return scope


def scope_list_filter(principal: Principal, requested: ContractFilter) -> ContractFilter:
    """
    Constrain a requested list filter to what the caller may see.

    Authority and oversight callers keep their filter unchanged.
    Contractor callers are pinned to their organization as contractor;
    landfill operators to their organization as landfill.  Any
    contractor/landfill filter they supplied is overwritten.

    Raises:
        PermissionDeniedError: If the caller has no read scope.
    """
    scope = require_read(principal)
    if scope == ReadScope.CONTRACTOR:
        return replace(requested, contractor_id=principal.organization_id)
    if scope == ReadScope.LANDFILL:
        return replace(requested, landfill_id=principal.organization_id)
    return requested


def can_read_contract(principal: Principal, contract: ContractInfo) -> tuple[bool, str]:
    """Row-level read rule for a single fetched contract."""
    scope = read_scope(principal)
    if scope == ReadScope.ALL:
        return (True, "")
    if scope == ReadScope.CONTRACTOR:
        if contract.contractor_id == principal.organization_id:
            return (True, "")
        return (False, "caller is not the contract's contractor")
    if scope == ReadScope.LANDFILL:
        if contract.landfill_id == principal.organization_id:
            return (True, "")
        return (False, "caller is not the contract's landfill")
    return check_capability(principal, Capability.READ_OWN_ONLY)


def require_read_contract(principal: Principal, contract: ContractInfo) -> None:
    allowed, reason = can_read_contract(principal, contract)
    if not allowed:
        raise _deny(principal, "read_contract", reason)


def can_bind_ticket(principal: Principal, contract: ContractInfo) -> tuple[bool, str]:
    """Binding needs the capability and the caller's organization as contract creator."""
    allowed, reason = check_capability(principal, Capability.BIND_TICKET)
    if not allowed:
        return (allowed, reason)
    if contract.created_by_org_id != principal.organization_id:
        return (False, "contract was created by another organization")
    return (True, "")


def require_bind_ticket(principal: Principal, contract: ContractInfo) -> None:
    allowed, reason = can_bind_ticket(principal, contract)
    if not allowed:
        raise _deny(principal, Capability.BIND_TICKET.value, reason)
