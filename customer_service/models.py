# customer_service/models.py

from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from .db import Base


class Customer(Base):
    __tablename__ = "customers"
    # AUTOINCREMENT keeps SQLite from handing a deleted customer's id to a new row
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    first_name = Column(Text, nullable=False, index=True)
    last_name = Column(Text, nullable=False)
    phone_number = Column(Text, nullable=False, unique=True)

    # Rows are removed by the database's ON DELETE CASCADE, not by the ORM
    addresses = relationship(
        "Address",
        back_populates="customer",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Address.id",
    )

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.first_name} {self.last_name}', phone='{self.phone_number}')>"


class Address(Base):
    __tablename__ = "addresses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    customer_id = Column(
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    address_details = Column(Text, nullable=False)
    city = Column(Text, nullable=False)
    state = Column(Text, nullable=False)
    pin_code = Column(Text, nullable=False)

    customer = relationship("Customer", back_populates="addresses")

    def __repr__(self):
        return f"<Address(id={self.id}, customer_id={self.customer_id}, city='{self.city}', pin_code='{self.pin_code}')>"
