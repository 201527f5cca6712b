import enum
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata


class OrderStatus(str, enum.Enum):
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    PROCESSING = "PROCESSING"
    AWAITING_COURIER = "AWAITING_COURIER"
    SHIPPING = "SHIPPING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class DeliveryStatus(str, enum.Enum):
    SHIPPING = "SHIPPING"
    DELIVERED = "DELIVERED"


class StaffRole(str, enum.Enum):
    ADMIN = "ADMIN"
    OWNER = "OWNER"
    COURIER = "COURIER"


class PackageType(str, enum.Enum):
    BUFFET = "BUFFET"
    BOX = "BOX"


class PackageCategory(str, enum.Enum):
    WEDDING = "WEDDING"
    MEMORIAL = "MEMORIAL"
    BIRTHDAY = "BIRTHDAY"
    FIELD_TRIP = "FIELD_TRIP"
    MEETING = "MEETING"


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (Index("uq_customer_email", "email", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False)
    email = mapped_column(String(255), nullable=False)
    password_hash = mapped_column(LargeBinary(72), nullable=False)
    phone = mapped_column(String(15))
    address1 = mapped_column(String(255))
    address2 = mapped_column(String(255))
    address3 = mapped_column(String(255))
    photo = mapped_column(Text)
    id_card_image = mapped_column(Text)
    birth_date = mapped_column(Date)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    orders: Mapped[List["Order"]] = relationship(
        "Order", uselist=True, back_populates="customer"
    )


class StaffUser(Base):
    __tablename__ = "staff_users"
    __table_args__ = (Index("uq_staff_email", "email", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(30), nullable=False)
    email = mapped_column(String(255), nullable=False)
    password_hash = mapped_column(LargeBinary(72), nullable=False)
    role = mapped_column(Enum(StaffRole, name="staff_role"), nullable=False)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    deliveries: Mapped[List["Delivery"]] = relationship(
        "Delivery", uselist=True, back_populates="courier"
    )


class Package(Base):
    __tablename__ = "packages"
    __table_args__ = (Index("idx_package_category", "category"),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(50), nullable=False)
    type = mapped_column(Enum(PackageType, name="package_type"), nullable=False)
    category = mapped_column(
        Enum(PackageCategory, name="package_category"), nullable=False
    )
    pax = mapped_column(Integer, nullable=False)
    price = mapped_column(BigInteger, nullable=False)
    description = mapped_column(Text)
    image1 = mapped_column(Text)
    image2 = mapped_column(Text)
    image3 = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    order_lines: Mapped[List["OrderLine"]] = relationship(
        "OrderLine", uselist=True, back_populates="package"
    )


class PaymentMethod(Base):
    __tablename__ = "payment_methods"
    __table_args__ = (Index("uq_payment_method_label", "label", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    label = mapped_column(String(50), nullable=False)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    details: Mapped[List["PaymentMethodDetail"]] = relationship(
        "PaymentMethodDetail",
        uselist=True,
        back_populates="payment_method",
        cascade="all, delete-orphan",
    )
    orders: Mapped[List["Order"]] = relationship(
        "Order", uselist=True, back_populates="payment_method"
    )


class PaymentMethodDetail(Base):
    __tablename__ = "payment_method_details"
    __table_args__ = (
        ForeignKeyConstraint(
            ["payment_method_id"],
            ["payment_methods.id"],
            ondelete="CASCADE",
            name="fk_pmd_payment_method",
        ),
        Index("idx_pmd_payment_method", "payment_method_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    payment_method_id = mapped_column(Integer, nullable=False)
    account_number = mapped_column(String(25), nullable=False)
    payee_name = mapped_column(String(50), nullable=False)
    logo_url = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    payment_method: Mapped["PaymentMethod"] = relationship(
        "PaymentMethod", back_populates="details"
    )


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        ForeignKeyConstraint(
            ["customer_id"],
            ["customers.id"],
            ondelete="CASCADE",
            name="fk_order_customer",
        ),
        ForeignKeyConstraint(
            ["payment_method_id"],
            ["payment_methods.id"],
            ondelete="RESTRICT",
            name="fk_order_payment_method",
        ),
        Index("uq_order_tracking_code", "tracking_code", unique=True),
        Index("idx_order_status", "status"),
        Index("idx_order_customer", "customer_id", "ordered_at"),
    )

    id = mapped_column(Integer, primary_key=True)
    customer_id = mapped_column(Integer, nullable=False)
    payment_method_id = mapped_column(Integer, nullable=False)
    tracking_code = mapped_column(String(20), nullable=False)
    ordered_at = mapped_column(DateTime, nullable=False)
    total = mapped_column(BigInteger, nullable=False)
    status = mapped_column(
        Enum(OrderStatus, name="order_status"),
        nullable=False,
        default=OrderStatus.AWAITING_CONFIRMATION,
    )
    payment_proof = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    customer: Mapped["Customer"] = relationship("Customer", back_populates="orders")
    payment_method: Mapped["PaymentMethod"] = relationship(
        "PaymentMethod", back_populates="orders"
    )
    lines: Mapped[List["OrderLine"]] = relationship(
        "OrderLine",
        uselist=True,
        back_populates="order",
        cascade="all, delete-orphan",
    )
    delivery: Mapped[Optional["Delivery"]] = relationship(
        "Delivery",
        uselist=False,
        back_populates="order",
        cascade="all, delete-orphan",
    )


class OrderLine(Base):
    __tablename__ = "order_lines"
    __table_args__ = (
        ForeignKeyConstraint(
            ["order_id"], ["orders.id"], ondelete="CASCADE", name="fk_line_order"
        ),
        ForeignKeyConstraint(
            ["package_id"],
            ["packages.id"],
            ondelete="SET NULL",
            name="fk_line_package",
        ),
        Index("idx_line_order", "order_id"),
        Index("idx_line_package", "package_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    order_id = mapped_column(Integer, nullable=False)
    package_id = mapped_column(Integer)
    subtotal = mapped_column(BigInteger, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="lines")
    package: Mapped[Optional["Package"]] = relationship(
        "Package", back_populates="order_lines"
    )


class Delivery(Base):
    __tablename__ = "deliveries"
    __table_args__ = (
        ForeignKeyConstraint(
            ["order_id"], ["orders.id"], ondelete="CASCADE", name="fk_delivery_order"
        ),
        ForeignKeyConstraint(
            ["courier_id"],
            ["staff_users.id"],
            ondelete="RESTRICT",
            name="fk_delivery_courier",
        ),
        Index("uq_delivery_order", "order_id", unique=True),
        Index("idx_delivery_courier", "courier_id", "status"),
    )

    id = mapped_column(Integer, primary_key=True)
    order_id = mapped_column(Integer, nullable=False)
    courier_id = mapped_column(Integer, nullable=False)
    dispatched_at = mapped_column(DateTime, nullable=False)
    arrived_at = mapped_column(DateTime)
    status = mapped_column(
        Enum(DeliveryStatus, name="delivery_status"),
        nullable=False,
        default=DeliveryStatus.SHIPPING,
    )
    proof_image = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    order: Mapped["Order"] = relationship("Order", back_populates="delivery")
    courier: Mapped["StaffUser"] = relationship(
        "StaffUser", back_populates="deliveries"
    )
