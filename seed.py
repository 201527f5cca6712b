"""
Create the schema and load starter data: three staff accounts, the package
catalog and the default payment methods.

    python seed.py          # seed an empty database
    python seed.py --reset  # drop everything first
"""
import sys

from sqlalchemy import select
from mangan.extensions import db
from mangan.models import (
    Base,
    Package,
    PackageCategory,
    PackageType,
    PaymentMethod,
    PaymentMethodDetail,
    StaffRole,
    StaffUser,
)
from mangan.utils.auth import hash_password
from main import create_app

DEFAULT_PASSWORD = "password123"

STAFF = [
    ("Admin Mangan", "admin@mangan.id", StaffRole.ADMIN),
    ("Owner Mangan", "owner@mangan.id", StaffRole.OWNER),
    ("Kurir Mangan", "kurir@mangan.id", StaffRole.COURIER),
]

PACKAGES = [
    ("Paket Pernikahan Gold", PackageType.BUFFET, PackageCategory.WEDDING, 500, 45000000,
     "Paket lengkap prasmanan untuk 500 porsi dengan 7 menu utama + pondokan. Termasuk dekorasi area catering."),
    ("Paket Pernikahan Platinum", PackageType.BUFFET, PackageCategory.WEDDING, 800, 75000000,
     "Paket eksklusif untuk 800 porsi. Menu premium, live cooking, dan pelayanan VVIP."),
    ("Nasi Box Rapat Standard", PackageType.BOX, PackageCategory.MEETING, 30, 900000,
     "Nasi box praktis dengan lauk ayam goreng, sayur, sambal, kerupuk, dan air mineral."),
    ("Nasi Box Rapat Premium", PackageType.BOX, PackageCategory.MEETING, 50, 1750000,
     "Nasi box premium dengan pilihan lauk daging/ikan, capcay, buah potong, puding, dan air mineral."),
    ("Tumpeng Selamatan (20 Pax)", PackageType.BUFFET, PackageCategory.MEMORIAL, 20, 850000,
     "Tumpeng kuning klasik dengan 7 macam lauk pauk tradisional. Cocok untuk syukuran kecil."),
    ("Tumpeng Besar (50 Pax)", PackageType.BUFFET, PackageCategory.MEMORIAL, 50, 1500000,
     "Tumpeng besar hias indah dengan lauk komplit (ayam bakar, perkedel, urap, dll)."),
    ("Paket Ulang Tahun Kids", PackageType.BOX, PackageCategory.BIRTHDAY, 50, 1250000,
     "Bento box karakter lucu dengan menu sehat (nugget homemade, sayur, sosis) + susu kotak."),
    ("Prasmanan Ulang Tahun Sweet 17", PackageType.BUFFET, PackageCategory.BIRTHDAY, 100, 8000000,
     "Menu prasmanan modern dengan dessert table (cupcakes, pudding) untuk pesta remaja."),
    ("Paket Studi Tour Hemat", PackageType.BOX, PackageCategory.FIELD_TRIP, 200, 4000000,
     "Paket nasi box ekonomis untuk rombongan besar. Higienis, kenyang, dan praktis."),
    ("Corporate Gathering Buffet", PackageType.BUFFET, PackageCategory.MEETING, 150, 12000000,
     "Menu prasmanan nusantara lengkap untuk acara kantor atau gathering perusahaan."),
]

PAYMENT_METHODS = {
    "Transfer Bank - Bank BCA": [("1234567890", "PT Mangan Catering")],
    "Transfer Bank - Bank Mandiri": [("1370012345678", "PT Mangan Catering")],
    "E-Wallet - GoPay": [("081234567890", "Mangan Catering")],
    "COD - Bayar di Tempat (COD)": [],
}


def seed(reset=False):
    if reset:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=db.engine)
    Base.metadata.create_all(bind=db.engine)

    password_hash = hash_password(DEFAULT_PASSWORD)
    for name, email, role in STAFF:
        if db.session.scalar(select(StaffUser).where(StaffUser.email == email)):
            continue
        db.session.add(StaffUser(name=name, email=email, password_hash=password_hash, role=role))
        print(f"Created staff user: {email} ({role.value})")

    if not db.session.scalar(select(Package.id).limit(1)):
        for name, package_type, category, pax, price, description in PACKAGES:
            db.session.add(
                Package(
                    name=name,
                    type=package_type,
                    category=category,
                    pax=pax,
                    price=price,
                    description=description,
                )
            )
            print(f"Created package: {name}")

    for label, details in PAYMENT_METHODS.items():
        if db.session.scalar(select(PaymentMethod).where(PaymentMethod.label == label)):
            continue
        db.session.add(
            PaymentMethod(
                label=label,
                details=[
                    PaymentMethodDetail(account_number=number, payee_name=payee)
                    for number, payee in details
                ],
            )
        )
        print(f"Created payment method: {label}")

    db.session.commit()


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        seed(reset="--reset" in sys.argv)
    print("Seeding finished!")
