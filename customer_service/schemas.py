# customer_service/schemas.py

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Request fields are optional at the wire level so that the record operations
# report every missing field together, the same way for create and update.


class CustomerPayload(BaseModel):
    first_name: Optional[str] = Field(None, description="First name of the customer.")
    last_name: Optional[str] = Field(None, description="Last name of the customer.")
    phone_number: Optional[str] = Field(
        None, description="Unique phone number of the customer."
    )


class AddressPayload(BaseModel):
    address_details: Optional[str] = Field(
        None, description="Street, building and locality."
    )
    city: Optional[str] = Field(None, description="City name.")
    state: Optional[str] = Field(None, description="State name.")
    pin_code: Optional[str] = Field(None, description="Postal index number.")


class CustomerResponse(BaseModel):
    id: int = Field(..., description="Unique ID of the customer.")
    first_name: str
    last_name: str
    phone_number: str

    model_config = ConfigDict(from_attributes=True)  # Enable ORM mode for Pydantic V2


class AddressResponse(BaseModel):
    id: int = Field(..., description="Unique ID of the address.")
    customer_id: int = Field(..., description="ID of the owning customer.")
    address_details: str
    city: str
    state: str
    pin_code: str

    model_config = ConfigDict(from_attributes=True)


class CustomerEnvelope(BaseModel):
    message: str = "success"
    data: CustomerResponse


class CustomerListEnvelope(BaseModel):
    message: str = "success"
    data: List[CustomerResponse] = []


class AddressEnvelope(BaseModel):
    message: str = "success"
    data: AddressResponse


class AddressListEnvelope(BaseModel):
    message: str = "success"
    data: List[AddressResponse] = []


class CustomerMutationEnvelope(BaseModel):
    message: str
    changes: int = Field(..., ge=0, description="Number of rows changed.")
    data: Optional[CustomerResponse] = None


class AddressMutationEnvelope(BaseModel):
    message: str
    changes: int = Field(..., ge=0, description="Number of rows changed.")
    data: Optional[AddressResponse] = None
