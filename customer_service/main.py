# customer_service/main.py

import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from . import records
from .db import dispose_engine, ensure_schema, get_db
from .errors import Outcome
from .schemas import (
    AddressEnvelope,
    AddressListEnvelope,
    AddressMutationEnvelope,
    AddressPayload,
    CustomerEnvelope,
    CustomerListEnvelope,
    CustomerMutationEnvelope,
    CustomerPayload,
)

# --- Standard Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress noisy logs from third-party libraries for cleaner output
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)

CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]
DB_STARTUP_MAX_RETRIES = int(os.getenv("DB_STARTUP_MAX_RETRIES", "10"))
DB_STARTUP_RETRY_DELAY_SECONDS = float(os.getenv("DB_STARTUP_RETRY_DELAY_SECONDS", "5"))


# --- Application Lifecycle ---
def ensure_schema_with_retries():
    max_retries = DB_STARTUP_MAX_RETRIES
    retry_delay_seconds = DB_STARTUP_RETRY_DELAY_SECONDS
    for i in range(max_retries):
        try:
            logger.info(
                f"Customer Service: Attempting to connect to the database and create tables (attempt {i+1}/{max_retries})..."
            )
            ensure_schema()
            logger.info(
                "Customer Service: Successfully connected to the database and ensured tables exist."
            )
            break
        except OperationalError as e:
            logger.warning(f"Customer Service: Failed to connect to the database: {e}")
            if i < max_retries - 1:
                logger.info(
                    f"Customer Service: Retrying in {retry_delay_seconds} seconds..."
                )
                time.sleep(retry_delay_seconds)
            else:
                logger.critical(
                    f"Customer Service: Failed to connect to the database after {max_retries} attempts. Exiting application."
                )
                sys.exit(1)
        except Exception as e:
            logger.critical(
                f"Customer Service: An unexpected error occurred during database startup: {e}",
                exc_info=True,
            )
            sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_schema_with_retries()
    yield
    dispose_engine()


# --- FastAPI Application Setup ---
app = FastAPI(
    title="Customer Service API",
    description="Manages customers and their addresses.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Ids outside the INTEGER range can never match a row
CustomerId = Annotated[int, Path(ge=1, le=records.MAX_ID)]
AddressId = Annotated[int, Path(ge=1, le=records.MAX_ID)]


# --- Error Handling ---
@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
):
    fields = []
    for error in exc.errors():
        # loc looks like ("body", "first_name") or ("path", "customer_id")
        field = str(error["loc"][-1]) if error.get("loc") else "body"
        if field not in fields:
            fields.append(field)
    logger.warning(
        f"Customer Service: Malformed request on {request.url.path}: {exc.errors()}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "kind": "validation_error",
                "message": f"Invalid or missing fields: {', '.join(fields)}",
                "missing_fields": fields,
            }
        },
    )


def _unwrap(outcome: Outcome):
    if outcome.ok:
        return outcome.value
    raise HTTPException(
        status_code=outcome.error.status_code, detail=outcome.error.to_response()
    )


# --- Root Endpoint ---
@app.get("/", status_code=status.HTTP_200_OK, summary="Root endpoint")
async def read_root():
    return {"message": "Welcome to the Customer Service!"}


# --- Health Check Endpoint ---
@app.get("/health", status_code=status.HTTP_200_OK, summary="Health check endpoint")
async def health_check():
    return {"status": "ok", "service": "customer-service"}


# --- Customer Endpoints ---
@app.post(
    "/api/customers",
    response_model=CustomerEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new customer",
)
def create_customer(payload: CustomerPayload, db: Session = Depends(get_db)):
    logger.info(
        f"Customer Service: Creating customer with phone number: {payload.phone_number}"
    )
    customer = _unwrap(
        records.create_customer(
            db,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone_number=payload.phone_number,
        )
    )
    return {"message": "success", "data": customer}


@app.get(
    "/api/customers",
    response_model=CustomerListEnvelope,
    summary="List customers, optionally searching by first or last name",
)
def list_customers(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    customers = _unwrap(records.list_customers(db, search=search))
    return {"message": "success", "data": customers}


@app.get(
    "/api/customers/{customer_id}",
    response_model=CustomerEnvelope,
    summary="Retrieve a single customer by ID",
)
def get_customer(customer_id: CustomerId, db: Session = Depends(get_db)):
    customer = _unwrap(records.get_customer(db, customer_id))
    return {"message": "success", "data": customer}


@app.put(
    "/api/customers/{customer_id}",
    response_model=CustomerMutationEnvelope,
    summary="Replace a customer's details",
)
def update_customer(
    customer_id: CustomerId, payload: CustomerPayload, db: Session = Depends(get_db)
):
    """
    Full replace: first_name, last_name and phone_number must all be supplied,
    even the ones that do not change.
    """
    mutation = _unwrap(
        records.update_customer(
            db,
            customer_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone_number=payload.phone_number,
        )
    )
    return {
        "message": f"Customer {customer_id} updated successfully.",
        "changes": mutation.changes,
        "data": mutation.record,
    }


@app.delete(
    "/api/customers/{customer_id}",
    response_model=CustomerMutationEnvelope,
    summary="Delete a customer and all of its addresses",
)
def delete_customer(customer_id: CustomerId, db: Session = Depends(get_db)):
    mutation = _unwrap(records.delete_customer(db, customer_id))
    return {"message": f"Customer {customer_id} deleted", "changes": mutation.changes}


# --- Address Endpoints ---
@app.post(
    "/api/customers/{customer_id}/addresses",
    response_model=AddressEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Add an address for a customer",
)
def create_address(
    customer_id: CustomerId, payload: AddressPayload, db: Session = Depends(get_db)
):
    address = _unwrap(
        records.create_address(
            db,
            customer_id=customer_id,
            address_details=payload.address_details,
            city=payload.city,
            state=payload.state,
            pin_code=payload.pin_code,
        )
    )
    return {"message": "Address added successfully", "data": address}


@app.get(
    "/api/customers/{customer_id}/addresses",
    response_model=AddressListEnvelope,
    summary="List a customer's addresses",
)
def list_addresses(customer_id: CustomerId, db: Session = Depends(get_db)):
    addresses = _unwrap(records.list_addresses_for_customer(db, customer_id))
    return {"message": "success", "data": addresses}


@app.get(
    "/api/addresses/{address_id}",
    response_model=AddressEnvelope,
    summary="Retrieve a single address by ID",
)
def get_address(address_id: AddressId, db: Session = Depends(get_db)):
    address = _unwrap(records.get_address(db, address_id))
    return {"message": "success", "data": address}


@app.put(
    "/api/addresses/{address_id}",
    response_model=AddressMutationEnvelope,
    summary="Replace an address's details",
)
def update_address(
    address_id: AddressId, payload: AddressPayload, db: Session = Depends(get_db)
):
    mutation = _unwrap(
        records.update_address(
            db,
            address_id,
            address_details=payload.address_details,
            city=payload.city,
            state=payload.state,
            pin_code=payload.pin_code,
        )
    )
    return {
        "message": f"Address {address_id} updated successfully.",
        "changes": mutation.changes,
        "data": mutation.record,
    }


@app.delete(
    "/api/addresses/{address_id}",
    response_model=AddressMutationEnvelope,
    summary="Delete a single address",
)
def delete_address(address_id: AddressId, db: Session = Depends(get_db)):
    mutation = _unwrap(records.delete_address(db, address_id))
    return {"message": f"Address {address_id} deleted", "changes": mutation.changes}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
