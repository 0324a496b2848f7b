"""
ContractService -- contract creation and deletion.

Responsibility:
    Persists a validated contract draft together with its zero usage row
    and its region associations, and deletes contracts (optionally with
    their dependent tickets).

Architecture position:
    Kernel > Services -- imperative shell, flush-only.  Called by
    ContractOperations, which owns the transaction, so that creation and
    forced deletion are all-or-nothing.

Invariants enforced:
    - Every contract has a usage row from the moment it exists (inserted
      with ON CONFLICT DO NOTHING in the same transaction).
    - Region associations are written only for landfill-service contracts,
      one row per distinct region id.
    - created_at is taken from the injected clock.
    - An unforced delete of a contract with tickets is refused; a forced
      delete removes the tickets first (their trips, assignments and
      appeals go with them), then the contract (its usage row, ledger and
      region associations go with it).

Failure modes:
    - ContractNotFoundError on delete of an unknown contract.
    - ContractHasDependenciesError on an unforced delete with tickets.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete

from contract_kernel.domain.clock import Clock, SystemClock
from contract_kernel.domain.dtos import ContractDraft, ContractInfo, DeletionImpact
from contract_kernel.exceptions import ContractHasDependenciesError
from contract_kernel.logging_config import get_logger
from contract_kernel.models.contract import Contract, ContractPolygon
from contract_kernel.models.scheduling import Ticket
from contract_kernel.selectors.contract_selector import ContractSelector
from contract_kernel.services.base import BaseService
from contract_kernel.services.usage_ledger import UsageLedgerService

logger = get_logger("services.contract")


class ContractService(BaseService[Contract]):
    """
    Write side of the contract store.

    Contract:
        Methods flush within the caller's transaction and return frozen
        DTOs.  Reads needed to make a decision (deletion impact) go
        through ContractSelector on the same session.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._selector = ContractSelector(session)
        self._ledger = UsageLedgerService(session, self._clock)

    def create_contract(
        self,
        draft: ContractDraft,
        created_by_org_id: UUID,
    ) -> ContractInfo:
        """
        Persist a validated draft.

        Args:
            draft: ContractorServiceDraft or LandfillServiceDraft.
            created_by_org_id: Organization of the issuing authority.

        Returns:
            ContractInfo of the stored contract.
        """
        terms = draft.terms
        contract = Contract(
            contract_type=draft.contract_type.value,
            contractor_id=draft.contractor_id,
            landfill_id=draft.landfill_id,
            created_by_org_id=created_by_org_id,
            name=terms.name,
            work_type=draft.work_type.value if draft.work_type else None,
            price_per_m3=terms.price_per_m3,
            budget_total=terms.budget_total,
            minimal_volume_m3=terms.minimal_volume_m3,
            start_at=terms.start_at,
            end_at=terms.end_at,
            is_active=terms.is_active,
            created_at=self._clock.now(),
        )
        self.session.add(contract)
        self.session.flush()

        self._ledger.ensure_usage_row(contract.id)

        for polygon_id in draft.polygon_ids:
            self.session.add(ContractPolygon(contract_id=contract.id, polygon_id=polygon_id))
        self.session.flush()

        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "contract_type": contract.contract_type,
                "created_by_org": str(created_by_org_id),
                "polygon_count": len(draft.polygon_ids),
            },
        )
        return ContractInfo.from_model(contract)

    def delete_contract(self, contract_id: UUID, force: bool = False) -> DeletionImpact:
        """
        Delete a contract.

        Args:
            contract_id: Contract to delete.
            force: Also delete the contract's tickets (and, through them,
                trips, assignments and appeals).

        Returns:
            The DeletionImpact that was computed before deleting.

        Raises:
            ContractNotFoundError: If the contract does not exist.
            ContractHasDependenciesError: If tickets exist and force is False.
        """
        impact = self._selector.deletion_impact(contract_id)

        if impact.is_blocking and not force:
            logger.info(
                "contract_delete_blocked",
                extra={
                    "contract_id": str(contract_id),
                    "tickets_count": impact.tickets_count,
                },
            )
            raise ContractHasDependenciesError(str(contract_id), impact)

        if impact.tickets_count:
            self.session.execute(
                delete(Ticket)
                .where(Ticket.contract_id == contract_id)
                .execution_options(synchronize_session=False)
            )
        self.session.execute(
            delete(Contract)
            .where(Contract.id == contract_id)
            .execution_options(synchronize_session=False)
        )
        self.session.flush()

        logger.info(
            "contract_deleted",
            extra={
                "contract_id": str(contract_id),
                "force": force,
                "tickets_deleted": impact.tickets_count,
                "trips_deleted": impact.trips_count,
                "usage_log_deleted": impact.usage_log_count,
            },
        )
        return impact
