"""
Production Service - planning and executing production runs.

This module provides functions for:
- Planning a run (``plan_production``); no stock is touched
- Previewing material requirements (``calculate_requirements``)
- Executing a run (``execute_production``): FEFO consumption of every BOM
  ingredient, creation of the finished-goods lot, completion of the run
  and the transaction-log trail
- Cancelling and archiving runs

Run lifecycle:
    planned -> completed   (execute_production)
    planned -> cancelled   (cancel_production)
Nothing leaves ``completed`` or ``cancelled``; ``archived_at`` is separate.

Execution is two-phase inside one transaction: every ingredient is
checked against released, unexpired stock before any batch is touched, so
a shortage on a later ingredient leaves earlier ingredients untouched.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from bakehouse.models import (
    Batch,
    Bom,
    ProductionRun,
    ProductionRunStatus,
    RawMaterial,
    TransactionType,
)
from bakehouse.services import (
    bom_service,
    fefo_allocator,
    product_stock_service,
    transaction_log_service,
)
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import (
    BomNotFound,
    FinishedProductNotFound,
    InsufficientStock,
    InvalidStateError,
    ProductionRunNotFound,
    RawMaterialNotFound,
    ValidationError,
)
from bakehouse.services.logging_utils import get_service_logger, log_operation
from bakehouse.utils.constants import ZERO_QUANTITY
from bakehouse.utils.datetime_utils import utc_now, as_utc, days_ago, days_from

logger = get_service_logger(__name__)

RUN_ENTITY = "Production run"


# =============================================================================
# Helpers
# =============================================================================


def _get_run_or_raise(run_id: int, session: Session) -> ProductionRun:
    run = session.get(ProductionRun, run_id)
    if run is None:
        raise ProductionRunNotFound(run_id)
    return run


def _require_planned(run: ProductionRun, operation: str) -> None:
    if not run.is_planned:
        raise InvalidStateError(RUN_ENTITY, run.id, run.status, operation)


def _non_negative(value, field: str) -> Decimal:
    quantity = fefo_allocator.to_stored_quantity(value, field)
    if quantity < ZERO_QUANTITY:
        raise ValidationError([f"{field} must not be negative, got {quantity}"])
    return quantity


def _aggregate_requirements(bom_items: List[Dict[str, Any]], target: Decimal) -> "OrderedDict[int, Decimal]":
    """Required quantity per material, in BOM order (repeated materials summed).

    Totals are rounded up to the stored precision.
    """
    required: "OrderedDict[int, Decimal]" = OrderedDict()
    for item in bom_items:
        amount = fefo_allocator.to_quantity(item["quantity_per_unit"]) * target
        required[item["material_id"]] = required.get(item["material_id"], ZERO_QUANTITY) + amount
    return OrderedDict(
        (material_id, fefo_allocator.round_up_quantity(amount))
        for material_id, amount in required.items()
    )


# =============================================================================
# Planning
# =============================================================================


def plan_production(
    bom_id: int,
    target_quantity,
    start_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Create a production run in the ``planned`` state.

    Stock sufficiency is not checked here; call ``calculate_requirements``
    first to warn about shortages. A shortage only blocks execution.

    Args:
        bom_id: Recipe to produce
        target_quantity: Units to produce (> 0)
        start_date: Planned start (defaults to now)
        notes: Optional notes
        session: Optional database session

    Returns:
        The new run as a dictionary

    Raises:
        BomNotFound: If the BOM doesn't exist
        ValidationError: If target_quantity is not positive
    """
    if session is not None:
        return _plan_production_impl(bom_id, target_quantity, start_date, notes, session)
    with session_scope() as session:
        return _plan_production_impl(bom_id, target_quantity, start_date, notes, session)


def _plan_production_impl(bom_id, target_quantity, start_date, notes, session: Session):
    target = fefo_allocator.require_positive(target_quantity, "target_quantity")
    if session.get(Bom, bom_id) is None:
        raise BomNotFound(bom_id)

    run = ProductionRun(
        bom_id=bom_id,
        status=ProductionRunStatus.PLANNED.value,
        target_quantity=target,
        start_date=as_utc(start_date) if start_date else utc_now(),
        notes=notes,
    )
    session.add(run)
    session.flush()

    log_operation(
        logger,
        operation="plan_production",
        outcome="success",
        production_run_id=run.id,
        bom_id=bom_id,
        target_quantity=str(target),
    )
    return run.to_dict()


def calculate_requirements(
    bom_id: int,
    target_quantity,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    Preview the raw materials a production run would need.

    ``current_stock`` is the gross quantity of every batch of the material,
    whatever its QC status or expiry, and ``is_shortage`` is computed from
    it. Execution only draws from released, unexpired batches, so the
    preview also reports ``available_stock`` and ``is_available_shortage``.

    Args:
        bom_id: Recipe to produce
        target_quantity: Units to produce (> 0)
        session: Optional database session

    Returns:
        One dict per BOM item with keys material_id, material_name,
        material_unit, required_amount, current_stock, is_shortage,
        shortage_amount, available_stock, is_available_shortage,
        available_shortage_amount (amounts as Decimal)

    Raises:
        BomNotFound: If the BOM doesn't exist
        ValidationError: If target_quantity is not positive
    """
    if session is not None:
        return _calculate_requirements_impl(bom_id, target_quantity, session)
    with session_scope() as session:
        return _calculate_requirements_impl(bom_id, target_quantity, session)


def _calculate_requirements_impl(bom_id, target_quantity, session: Session) -> List[Dict[str, Any]]:
    target = fefo_allocator.require_positive(target_quantity, "target_quantity")
    bom_items = bom_service.get_bom_items(bom_id, session=session)
    now = utc_now()

    requirements = []
    for item in bom_items:
        material = session.get(RawMaterial, item["material_id"])
        if material is None:
            continue

        batches = session.query(Batch).filter(Batch.material_id == material.id).all()
        current_stock = fefo_allocator.total_quantity(batches)
        available_stock = fefo_allocator.total_quantity(b for b in batches if b.is_eligible(now))
        required = fefo_allocator.round_up_quantity(
            fefo_allocator.to_quantity(item["quantity_per_unit"]) * target
        )

        requirements.append(
            {
                "material_id": material.id,
                "material_name": material.name,
                "material_unit": material.unit,
                "required_amount": required,
                "current_stock": current_stock,
                "is_shortage": current_stock < required,
                "shortage_amount": max(ZERO_QUANTITY, required - current_stock),
                "available_stock": available_stock,
                "is_available_shortage": available_stock < required,
                "available_shortage_amount": max(ZERO_QUANTITY, required - available_stock),
            }
        )

    return requirements


# =============================================================================
# Execution
# =============================================================================


def execute_production(
    run_id: int,
    produced_quantity,
    rejected_quantity=0,
    notes: Optional[str] = None,
    user_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Execute a planned production run.

    This function atomically:
    1. Validates the run exists and is ``planned``
    2. Computes each ingredient's requirement (BOM quantity x target)
    3. Plans FEFO allocations for every ingredient against released,
       unexpired batches; the first shortage raises before any mutation
    4. Deducts the batches, writing one ``batch_used`` entry per batch
    5. Creates one finished-goods lot (expiry = now + shelf life)
    6. Marks the run ``completed`` with produced/rejected quantities
    7. Appends one ``production_completed`` entry

    Args:
        run_id: Run to execute
        produced_quantity: Good units produced (>= 0)
        rejected_quantity: Units rejected (>= 0)
        notes: Optional notes; replaces the run's notes when given
        user_id: Optional actor recorded in the transaction log
        session: Optional database session

    Returns:
        Dict with keys success, production_run_id, produced_quantity,
        rejected_quantity, expiry_date, product_stock_id, consumptions
        (list of {"material_id", "batch_id", "quantity"})

    Raises:
        ProductionRunNotFound: If the run doesn't exist
        InvalidStateError: If the run is not ``planned``
        BomNotFound / FinishedProductNotFound: If the recipe is broken
        InsufficientStock: If any ingredient is short (names the material)
        ValidationError: If a quantity is negative
    """
    if session is not None:
        return _execute_production_impl(
            run_id, produced_quantity, rejected_quantity, notes, user_id, session
        )
    with session_scope() as session:
        return _execute_production_impl(
            run_id, produced_quantity, rejected_quantity, notes, user_id, session
        )


def _execute_production_impl(
    run_id, produced_quantity, rejected_quantity, notes, user_id, session: Session
) -> Dict[str, Any]:
    produced = _non_negative(produced_quantity, "produced_quantity")
    rejected = _non_negative(rejected_quantity, "rejected_quantity")

    run = _get_run_or_raise(run_id, session)
    _require_planned(run, "execute")

    bom = (
        session.query(Bom).options(joinedload(Bom.product)).filter(Bom.id == run.bom_id).first()
    )
    if bom is None:
        raise BomNotFound(run.bom_id)
    product = bom.product
    if product is None:
        raise FinishedProductNotFound(bom.product_id)

    bom_items = bom_service.get_bom_items(bom.id, session=session)
    target = fefo_allocator.to_quantity(run.target_quantity)
    now = utc_now()

    # Phase 1: plan every ingredient; nothing is mutated yet
    planned = []
    for material_id, required in _aggregate_requirements(bom_items, target).items():
        material = session.get(RawMaterial, material_id)
        if material is None:
            raise RawMaterialNotFound(material_id)

        batches = fefo_allocator.get_eligible_batches(session, material_id, now)
        try:
            allocations = fefo_allocator.plan_allocation(batches, required, material.name)
        except InsufficientStock as e:
            log_operation(
                logger,
                operation="execute_production",
                outcome="insufficient_stock",
                level=logging.WARNING,
                production_run_id=run.id,
                material_id=material_id,
                required=str(e.required),
                available=str(e.available),
            )
            raise
        planned.append((material_id, batches, allocations))

    # Phase 2: commit
    consumptions = []
    for material_id, batches, allocations in planned:
        fefo_allocator.commit_batch_allocation(
            session,
            batches,
            allocations,
            material_id,
            production_run_id=run.id,
            user_id=user_id,
            notes=f"Production run #{run.id}",
        )
        consumptions.extend(
            {"material_id": material_id, "batch_id": a.lot_id, "quantity": a.quantity}
            for a in allocations
        )

    stock_entry = None
    if produced > ZERO_QUANTITY:
        stock_entry = product_stock_service.create_stock_entry(
            product, produced, run.id, now, session=session
        )

    run.status = ProductionRunStatus.COMPLETED.value
    run.produced_quantity = produced
    run.rejected_quantity = rejected
    run.completed_date = now
    if notes is not None:
        run.notes = notes
    session.flush()

    transaction_log_service.append_entry(
        TransactionType.PRODUCTION_COMPLETED,
        produced,
        production_run_id=run.id,
        user_id=user_id,
        notes=notes,
        session=session,
    )

    expiry_date = days_from(now, product.effective_shelf_life_days)

    log_operation(
        logger,
        operation="execute_production",
        outcome="success",
        production_run_id=run.id,
        bom_id=bom.id,
        produced_quantity=str(produced),
        rejected_quantity=str(rejected),
        batches_used=len(consumptions),
    )

    return {
        "success": True,
        "production_run_id": run.id,
        "produced_quantity": produced,
        "rejected_quantity": rejected,
        "expiry_date": expiry_date,
        "product_stock_id": stock_entry.id if stock_entry is not None else None,
        "consumptions": consumptions,
    }


# =============================================================================
# Cancellation and archiving
# =============================================================================


def cancel_production(run_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Cancel a planned run. No stock is touched.

    Raises:
        ProductionRunNotFound: If the run doesn't exist
        InvalidStateError: If the run is not ``planned``
    """
    if session is not None:
        return _cancel_production_impl(run_id, session)
    with session_scope() as session:
        return _cancel_production_impl(run_id, session)


def _cancel_production_impl(run_id: int, session: Session) -> Dict[str, Any]:
    run = _get_run_or_raise(run_id, session)
    _require_planned(run, "cancel")

    run.status = ProductionRunStatus.CANCELLED.value
    session.flush()

    log_operation(logger, operation="cancel_production", outcome="success", production_run_id=run_id)
    return run.to_dict()


def archive_completed_runs(
    older_than_days: float,
    session: Optional[Session] = None,
) -> Dict[str, int]:
    """
    Archive completed runs finished more than ``older_than_days`` ago.

    Already archived runs are skipped, so repeating the call archives
    nothing new.

    Returns:
        {"archived_count": n}
    """
    if session is not None:
        return _archive_completed_runs_impl(older_than_days, session)
    with session_scope() as session:
        return _archive_completed_runs_impl(older_than_days, session)


def _archive_completed_runs_impl(older_than_days: float, session: Session) -> Dict[str, int]:
    if older_than_days < 0:
        raise ValidationError(["older_than_days must not be negative"])

    now = utc_now()
    cutoff = days_ago(older_than_days, now)

    runs = (
        session.query(ProductionRun)
        .filter(
            ProductionRun.status == ProductionRunStatus.COMPLETED.value,
            ProductionRun.archived_at.is_(None),
            ProductionRun.completed_date.isnot(None),
            ProductionRun.completed_date < cutoff,
        )
        .all()
    )
    for run in runs:
        run.archived_at = now
    session.flush()

    log_operation(
        logger,
        operation="archive_completed_runs",
        outcome="success",
        archived_count=len(runs),
        older_than_days=older_than_days,
    )
    return {"archived_count": len(runs)}


# =============================================================================
# Queries
# =============================================================================


def _run_query(session: Session):
    return session.query(ProductionRun).options(
        joinedload(ProductionRun.bom).joinedload(Bom.product)
    )


def get_production_run(run_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Get one run with BOM and product names.

    Raises:
        ProductionRunNotFound: If the run doesn't exist
    """
    if session is not None:
        return _get_production_run_impl(run_id, session)
    with session_scope() as session:
        return _get_production_run_impl(run_id, session)


def _get_production_run_impl(run_id: int, session: Session) -> Dict[str, Any]:
    run = _run_query(session).filter(ProductionRun.id == run_id).first()
    if run is None:
        raise ProductionRunNotFound(run_id)
    return run.to_dict(include_relationships=True)


def list_production_runs(
    include_archived: bool = False,
    status: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    List runs, most recent start date first.

    Args:
        include_archived: If True, include archived runs
        status: Optional ProductionRunStatus filter
        session: Optional database session
    """
    if session is not None:
        return _list_production_runs_impl(include_archived, status, session)
    with session_scope() as session:
        return _list_production_runs_impl(include_archived, status, session)


def _list_production_runs_impl(include_archived, status, session: Session) -> List[Dict[str, Any]]:
    query = _run_query(session)
    if not include_archived:
        query = query.filter(ProductionRun.archived_at.is_(None))
    if status is not None:
        try:
            status = ProductionRunStatus(status)
        except ValueError:
            raise ValidationError([f"Unknown production run status: {status!r}"])
        query = query.filter(ProductionRun.status == status.value)

    runs = query.order_by(ProductionRun.start_date.desc(), ProductionRun.id.desc()).all()
    return [run.to_dict(include_relationships=True) for run in runs]
