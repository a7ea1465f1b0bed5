from typing import List

from sqlalchemy import (
    Boolean,
    DECIMAL,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

from .utils.datetime_utils import local_now

Base = declarative_base()
metadata = Base.metadata


class Studio(Base):
    __tablename__ = "studios"
    __table_args__ = (Index("studio_slug", "slug", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(255), nullable=False)
    slug = mapped_column(String(255), nullable=False)
    contact_email = mapped_column(String(255))
    phone = mapped_column(String(32))
    address = mapped_column(Text)
    logo_url = mapped_column(String(512))
    is_active = mapped_column(Boolean, nullable=False, default=True)
    whatsapp_instance_name = mapped_column(String(128))
    whatsapp_instance_id = mapped_column(String(128))
    whatsapp_token = mapped_column(String(255))
    whatsapp_status = mapped_column(String(32))
    created_at = mapped_column(DateTime, default=local_now)
    updated_at = mapped_column(DateTime, default=local_now, onupdate=local_now)

    members: Mapped[List["StudioMember"]] = relationship(
        "StudioMember", uselist=True, back_populates="studio", cascade="all, delete-orphan"
    )


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (Index("profile_email", "email", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    email = mapped_column(String(255), nullable=False)
    password_hash = mapped_column(String(128))
    full_name = mapped_column(String(255))
    phone = mapped_column(String(32))
    cpf = mapped_column(String(20))
    avatar_url = mapped_column(String(512))
    display_color = mapped_column(String(16), default="#92FFAD")
    is_admin = mapped_column(Boolean, nullable=False, default=False)
    created_at = mapped_column(DateTime, default=local_now)
    updated_at = mapped_column(DateTime, default=local_now, onupdate=local_now)

    memberships: Mapped[List["StudioMember"]] = relationship(
        "StudioMember", uselist=True, back_populates="profile"
    )


class StudioMember(Base):
    __tablename__ = "studio_members"
    __table_args__ = (
        Index("studio_member_unique", "studio_id", "profile_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    studio_id = mapped_column(ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    profile_id = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    role = mapped_column(
        Enum("MASTER", "ARTIST", "PIERCER", "RECEPTIONIST"), nullable=False, default="ARTIST"
    )
    commission_percentage = mapped_column(Integer, default=0)
    created_at = mapped_column(DateTime, default=local_now)

    studio: Mapped["Studio"] = relationship("Studio", back_populates="members")
    profile: Mapped["Profile"] = relationship("Profile", back_populates="memberships")


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (Index("client_studio", "studio_id"),)

    id = mapped_column(Integer, primary_key=True)
    studio_id = mapped_column(ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    profile_id = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"))
    full_name = mapped_column(String(255), nullable=False)
    first_name = mapped_column(String(120))
    last_name = mapped_column(String(120))
    email = mapped_column(String(255))
    phone = mapped_column(String(32))
    birth_date = mapped_column(Date)
    cpf = mapped_column(String(20))
    rg_passport = mapped_column(String(40))
    profession = mapped_column(String(120))
    social_media = mapped_column(String(255))
    cep = mapped_column(String(16))
    neighborhood = mapped_column(String(120))
    city = mapped_column(String(120))
    state = mapped_column(String(64))
    address = mapped_column(JSON)
    avatar_url = mapped_column(String(512))
    created_at = mapped_column(DateTime, default=local_now)
    updated_at = mapped_column(DateTime, default=local_now, onupdate=local_now)

    notes: Mapped[List["ClientNote"]] = relationship(
        "ClientNote", uselist=True, back_populates="client", cascade="all, delete-orphan"
    )


class ClientNote(Base):
    __tablename__ = "client_notes"

    id = mapped_column(Integer, primary_key=True)
    client_id = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    content = mapped_column(Text, nullable=False)
    type = mapped_column(String(32), default="general")
    author_name = mapped_column(String(255))
    created_at = mapped_column(DateTime, default=local_now)
    updated_at = mapped_column(DateTime, default=local_now, onupdate=local_now)

    client: Mapped["Client"] = relationship("Client", back_populates="notes")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("appointment_agenda", "studio_id", "professional_id", "scheduled_date"),
    )

    id = mapped_column(Integer, primary_key=True)
    studio_id = mapped_column(ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    client_id = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"))
    professional_id = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"))
    # Free-form on purpose: unrecognized labels are stored as given
    status = mapped_column(String(32), nullable=False, default="pending")
    scheduled_date = mapped_column(Date, nullable=False)
    scheduled_time = mapped_column(Time, nullable=False)
    duration_minutes = mapped_column(Integer, nullable=False, default=60)
    notes = mapped_column(Text)
    appointment_type = mapped_column(String(64))
    price = mapped_column(DECIMAL(10, 2))
    created_at = mapped_column(DateTime, default=local_now)
    updated_at = mapped_column(DateTime, default=local_now, onupdate=local_now)

    client: Mapped["Client"] = relationship("Client")
    professional: Mapped["Profile"] = relationship("Profile")


class Session(Base):
    __tablename__ = "sessions"
    __table_args__ = (Index("session_client", "client_id"),)

    id = mapped_column(Integer, primary_key=True)
    studio_id = mapped_column(ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    client_id = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    professional_id = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"))
    appointment_id = mapped_column(ForeignKey("appointments.id", ondelete="SET NULL"))
    status = mapped_column(
        Enum("draft", "pending", "in_progress", "completed", "cancelled"),
        nullable=False,
        default="draft",
    )
    title = mapped_column(String(255))
    description = mapped_column(Text)
    service_type = mapped_column(Enum("tattoo", "piercing"), nullable=False, default="tattoo")
    body_location = mapped_column(String(120))
    size = mapped_column(String(64))
    art_color = mapped_column(String(64))
    price = mapped_column(DECIMAL(10, 2), default=0)
    payment_status = mapped_column(Enum("pending", "paid"), nullable=False, default="pending")
    photos_url = mapped_column(JSON)
    consent_signature_url = mapped_column(String(512))
    session_number = mapped_column(Integer, default=1)
    performed_date = mapped_column(DateTime)
    created_at = mapped_column(DateTime, default=local_now)

    client: Mapped["Client"] = relationship("Client")
    professional: Mapped["Profile"] = relationship("Profile")


class LoyaltyTransaction(Base):
    __tablename__ = "loyalty_transactions"
    __table_args__ = (
        Index("loyalty_client", "client_id", "created_at"),
        Index("loyalty_studio", "studio_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    studio_id = mapped_column(ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    client_id = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    appointment_id = mapped_column(Integer)
    type = mapped_column(Enum("CREDIT", "DEBIT", "EXPIRED", "MANUAL_ADJUST"), nullable=False)
    # Always a positive magnitude; direction comes from type
    amount = mapped_column(DECIMAL(10, 2), nullable=False)
    description = mapped_column(Text)
    expires_at = mapped_column(DateTime)
    created_at = mapped_column(DateTime, nullable=False, default=local_now)


class LoyaltySettings(Base):
    __tablename__ = "loyalty_settings"
    __table_args__ = (Index("loyalty_settings_studio", "studio_id", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    studio_id = mapped_column(ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    reward_type = mapped_column(Enum("PERCENTAGE", "FIXED"), nullable=False, default="PERCENTAGE")
    reward_value = mapped_column(DECIMAL(10, 2), nullable=False, default=10)
    min_spent_to_use = mapped_column(DECIMAL(10, 2), nullable=False, default=100)
    validity_days = mapped_column(Integer, nullable=False, default=90)
    max_usage_limit = mapped_column(DECIMAL(5, 2), nullable=False, default=100)
    updated_at = mapped_column(DateTime, default=local_now, onupdate=local_now)


class MarketingCampaign(Base):
    __tablename__ = "marketing_campaigns"

    id = mapped_column(Integer, primary_key=True)
    studio_id = mapped_column(ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    name = mapped_column(String(255), nullable=False)
    type = mapped_column(Enum("birthday", "winback", "return", "custom"), nullable=False)
    status = mapped_column(Enum("draft", "scheduled", "sent"), nullable=False, default="draft")
    audience_count = mapped_column(Integer, nullable=False, default=0)
    channel = mapped_column(Enum("whatsapp", "email"), nullable=False, default="whatsapp")
    message_template = mapped_column(Text)
    sent_count = mapped_column(Integer, default=0)
    failed_count = mapped_column(Integer, default=0)
    created_at = mapped_column(DateTime, default=local_now)


class AnamnesisRecord(Base):
    __tablename__ = "anamnesis_records"
    __table_args__ = (Index("anamnesis_appointment", "appointment_id", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    appointment_id = mapped_column(
        ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    studio_id = mapped_column(ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    answers = mapped_column(JSON, nullable=False)
    observations = mapped_column(Text)
    created_at = mapped_column(DateTime, default=local_now)
    updated_at = mapped_column(DateTime, default=local_now, onupdate=local_now)
