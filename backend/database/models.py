"""
Store Table Models

SQLAlchemy mappings for the tables the cleanup run reads and deletes.
The identity store and the profile store are separate databases, so each
has its own declarative base and metadata.
"""

import uuid

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase


class IdentityBase(DeclarativeBase):
    pass


class ProfileBase(DeclarativeBase):
    pass


# ==================== IDENTITY STORE ====================

class IdentityDB(IdentityBase):
    """
    Identity - Login credential record

    Owned by the authentication subsystem. Email is not unique here, which
    is exactly what the cleanup run repairs.
    """
    __tablename__ = "identities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(256), nullable=True, index=True)


# ==================== PROFILE STORE ====================

class ProfileDB(ProfileBase):
    """
    Profile - Application user record

    subject_ref holds the key of an IdentityDB row in the other database,
    so there is no database-level foreign key for it.
    """
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_ref = Column(UUID(as_uuid=True), nullable=False, index=True)


class AgencyAssignmentDB(ProfileBase):
    __tablename__ = "agency_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    agency_id = Column(Integer)


class DivisionAssignmentDB(ProfileBase):
    __tablename__ = "division_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    division_id = Column(Integer)


class SectionAssignmentDB(ProfileBase):
    __tablename__ = "section_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    section_id = Column(Integer)
