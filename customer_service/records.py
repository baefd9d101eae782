# customer_service/records.py

"""
Record operations for customers and their addresses.

Every operation takes the request's session first and returns an Outcome.
Each write is a single statement; uniqueness, the address -> customer
reference and cascading deletes are left to the database constraints, and
the statement's row count decides whether an update or delete found its row.
"""

import functools
import logging
from typing import Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import (
    ConflictError,
    Mutation,
    NotFoundError,
    Outcome,
    RecordError,
    StorageError,
    UnresolvedReferenceError,
    ValidationError,
)
from .models import Address, Customer

logger = logging.getLogger(__name__)

UNIQUE_CUSTOMER_FIELDS = tuple(
    column.name for column in Customer.__table__.columns if column.unique
)

# PostgreSQL SQLSTATE codes for constraint violations
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

# Largest value an INTEGER primary key can hold (SQLite and PostgreSQL BIGINT)
MAX_ID = 2**63 - 1


def classify_integrity_error(exc: IntegrityError) -> RecordError:
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    message = str(orig).lower()

    if sqlstate == UNIQUE_VIOLATION or "unique constraint" in message:
        field = next(
            (name for name in UNIQUE_CUSTOMER_FIELDS if name in message),
            UNIQUE_CUSTOMER_FIELDS[0],
        )
        return ConflictError(field=field)
    if sqlstate == FOREIGN_KEY_VIOLATION or "foreign key constraint" in message:
        return UnresolvedReferenceError(
            field="customer_id", message="Customer does not exist."
        )
    return StorageError(detail=str(orig))


def returns_outcome(operation):
    """
    Runs ``operation(db, ...)`` and wraps whatever it returns or raises in an
    Outcome. Storage failures roll the session back before being classified.
    """

    @functools.wraps(operation)
    def wrapper(db: Session, *args, **kwargs) -> Outcome:
        try:
            return Outcome.success(operation(db, *args, **kwargs))
        except RecordError as e:
            logger.warning(
                f"Customer Service: {operation.__name__} rejected ({e.kind}): {e.message}"
            )
            return Outcome.failure(e)
        except IntegrityError as e:
            db.rollback()
            error = classify_integrity_error(e)
            if isinstance(error, StorageError):
                logger.error(
                    f"Customer Service: {operation.__name__} hit an unexpected constraint: {e.orig}",
                    exc_info=True,
                )
            else:
                logger.warning(
                    f"Customer Service: {operation.__name__} rejected ({error.kind}): {error.message}"
                )
            return Outcome.failure(error)
        # sqlite3 raises OverflowError itself for ints wider than 64 bits
        except (SQLAlchemyError, OverflowError) as e:
            db.rollback()
            logger.error(
                f"Customer Service: Storage error in {operation.__name__}: {e}",
                exc_info=True,
            )
            return Outcome.failure(StorageError(detail=str(e)))

    return wrapper


def _require(**fields) -> None:
    missing = [
        name
        for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise ValidationError(missing_fields=missing)


def _in_id_range(value: int) -> bool:
    return 1 <= value <= MAX_ID


def _require_existing_id(entity: str, value: int) -> None:
    if not _in_id_range(value):
        raise NotFoundError(entity, value)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# --- Customers ---
@returns_outcome
def create_customer(
    db: Session,
    first_name: Optional[str],
    last_name: Optional[str],
    phone_number: Optional[str],
):
    _require(first_name=first_name, last_name=last_name, phone_number=phone_number)

    customer = Customer(
        first_name=first_name, last_name=last_name, phone_number=phone_number
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    logger.info(f"Customer Service: Customer {customer.id} created.")
    return customer


@returns_outcome
def list_customers(db: Session, search: Optional[str] = None):
    query = db.query(Customer)
    if search:
        pattern = f"%{_escape_like(search)}%"
        query = query.filter(
            or_(
                Customer.first_name.like(pattern, escape="\\"),
                Customer.last_name.like(pattern, escape="\\"),
            )
        )
    customers = query.order_by(Customer.first_name, Customer.id).all()
    logger.info(
        f"Customer Service: Listed {len(customers)} customers (search={search!r})."
    )
    return customers


@returns_outcome
def get_customer(db: Session, customer_id: int):
    _require_existing_id("customer", customer_id)
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if customer is None:
        raise NotFoundError("customer", customer_id)
    return customer


@returns_outcome
def update_customer(
    db: Session,
    customer_id: int,
    first_name: Optional[str],
    last_name: Optional[str],
    phone_number: Optional[str],
):
    _require(first_name=first_name, last_name=last_name, phone_number=phone_number)
    _require_existing_id("customer", customer_id)

    result = db.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(first_name=first_name, last_name=last_name, phone_number=phone_number)
        .execution_options(synchronize_session=False)
    )
    changes = result.rowcount
    if changes == 0:
        db.rollback()
        raise NotFoundError("customer", customer_id)
    db.commit()

    customer = (
        db.query(Customer)
        .populate_existing()
        .filter(Customer.id == customer_id)
        .first()
    )
    logger.info(f"Customer Service: Customer {customer_id} updated.")
    return Mutation(changes=changes, record=customer)


@returns_outcome
def delete_customer(db: Session, customer_id: int):
    _require_existing_id("customer", customer_id)
    result = db.execute(
        delete(Customer)
        .where(Customer.id == customer_id)
        .execution_options(synchronize_session=False)
    )
    changes = result.rowcount
    if changes == 0:
        db.rollback()
        raise NotFoundError("customer", customer_id)
    db.commit()
    logger.info(
        f"Customer Service: Customer {customer_id} deleted along with its addresses."
    )
    return Mutation(changes=changes)


# --- Addresses ---
@returns_outcome
def create_address(
    db: Session,
    customer_id: Optional[int],
    address_details: Optional[str],
    city: Optional[str],
    state: Optional[str],
    pin_code: Optional[str],
):
    _require(
        customer_id=customer_id,
        address_details=address_details,
        city=city,
        state=state,
        pin_code=pin_code,
    )
    if not _in_id_range(customer_id):
        raise UnresolvedReferenceError(
            field="customer_id", message="Customer does not exist."
        )

    address = Address(
        customer_id=customer_id,
        address_details=address_details,
        city=city,
        state=state,
        pin_code=pin_code,
    )
    db.add(address)
    db.commit()
    db.refresh(address)
    logger.info(
        f"Customer Service: Address {address.id} created for customer {customer_id}."
    )
    return address


@returns_outcome
def list_addresses_for_customer(db: Session, customer_id: int):
    if not _in_id_range(customer_id):
        return []
    return (
        db.query(Address)
        .filter(Address.customer_id == customer_id)
        .order_by(Address.id)
        .all()
    )


@returns_outcome
def get_address(db: Session, address_id: int):
    _require_existing_id("address", address_id)
    address = db.query(Address).filter(Address.id == address_id).first()
    if address is None:
        raise NotFoundError("address", address_id)
    return address


@returns_outcome
def update_address(
    db: Session,
    address_id: int,
    address_details: Optional[str],
    city: Optional[str],
    state: Optional[str],
    pin_code: Optional[str],
):
    _require(
        address_details=address_details, city=city, state=state, pin_code=pin_code
    )
    _require_existing_id("address", address_id)

    result = db.execute(
        update(Address)
        .where(Address.id == address_id)
        .values(
            address_details=address_details, city=city, state=state, pin_code=pin_code
        )
        .execution_options(synchronize_session=False)
    )
    changes = result.rowcount
    if changes == 0:
        db.rollback()
        raise NotFoundError("address", address_id)
    db.commit()

    address = (
        db.query(Address).populate_existing().filter(Address.id == address_id).first()
    )
    logger.info(f"Customer Service: Address {address_id} updated.")
    return Mutation(changes=changes, record=address)


@returns_outcome
def delete_address(db: Session, address_id: int):
    _require_existing_id("address", address_id)
    result = db.execute(
        delete(Address)
        .where(Address.id == address_id)
        .execution_options(synchronize_session=False)
    )
    changes = result.rowcount
    if changes == 0:
        db.rollback()
        raise NotFoundError("address", address_id)
    db.commit()
    logger.info(f"Customer Service: Address {address_id} deleted.")
    return Mutation(changes=changes)
