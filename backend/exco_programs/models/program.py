from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, Text, Numeric, Date, DateTime, ForeignKey, JSON, Index, UniqueConstraint
from typing import Optional, List, Any
from decimal import Decimal
from datetime import date, datetime

from .base import Base


class ProgramRecord(Base):
    __tablename__ = 'programs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default='')
    department: Mapped[str] = mapped_column(String(255), default='', index=True)
    recipient_name: Mapped[str] = mapped_column(String(255), default='')
    budget: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    # plain string on purpose: unknown values must surface as UnknownStatus on load
    status: Mapped[str] = mapped_column(String(32), nullable=False, default='draft', index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    submitted_by: Mapped[Optional[str]] = mapped_column(String(128))
    objectives: Mapped[List[str]] = mapped_column(JSON, default=list)
    kpi: Mapped[List[Any]] = mapped_column(JSON, default=list)
    documents: Mapped[List[Any]] = mapped_column(JSON, default=list)
    voucher_number: Mapped[Optional[str]] = mapped_column(String(100))
    eft_number: Mapped[Optional[str]] = mapped_column(String(100))
    letter_reference_number: Mapped[Optional[str]] = mapped_column(String(100))
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[Optional[int]] = mapped_column(Integer)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejected_by: Mapped[Optional[int]] = mapped_column(Integer)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    mmk_accepted_by: Mapped[Optional[int]] = mapped_column(Integer)
    mmk_accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    payment_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    payment_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    budget_deducted: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # optimistic-concurrency token; written by the store, never by the database
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    queries = relationship('ProgramQueryRecord', back_populates='program', cascade='all, delete-orphan',
                           order_by='ProgramQueryRecord.seq')
    deductions = relationship('BudgetDeductionRecord', back_populates='program', cascade='all, delete-orphan',
                              order_by='BudgetDeductionRecord.seq')
    remarks = relationship('ProgramRemarkRecord', back_populates='program', cascade='all, delete-orphan',
                           order_by='ProgramRemarkRecord.seq')

    __table_args__ = (
        Index('ix_programs_status_updated_at', 'status', 'updated_at'),
    )


class ProgramQueryRecord(Base):
    __tablename__ = 'program_queries'
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    program_id: Mapped[int] = mapped_column(ForeignKey('programs.id', ondelete='CASCADE'), nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    query_text: Mapped[str] = mapped_column(Text, nullable=False)
    queried_by: Mapped[Optional[int]] = mapped_column(Integer)
    queried_by_name: Mapped[Optional[str]] = mapped_column(String(128))
    query_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default='pending')
    answer_text: Mapped[Optional[str]] = mapped_column(Text)
    answered_by: Mapped[Optional[int]] = mapped_column(Integer)
    answered_by_name: Mapped[Optional[str]] = mapped_column(String(128))
    answered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    program = relationship('ProgramRecord', back_populates='queries')
    __table_args__ = (UniqueConstraint('program_id', 'seq', name='uq_program_query_seq'),)


class BudgetDeductionRecord(Base):
    __tablename__ = 'budget_deductions'
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    program_id: Mapped[int] = mapped_column(ForeignKey('programs.id', ondelete='CASCADE'), nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    deduction_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    deduction_reason: Mapped[str] = mapped_column(Text, nullable=False)
    deducted_by: Mapped[Optional[int]] = mapped_column(Integer)
    deducted_by_name: Mapped[Optional[str]] = mapped_column(String(128))
    deduction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default='deduction')
    reverses_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True)

    program = relationship('ProgramRecord', back_populates='deductions')
    __table_args__ = (UniqueConstraint('program_id', 'seq', name='uq_budget_deduction_seq'),)


class ProgramRemarkRecord(Base):
    __tablename__ = 'program_remarks'
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    program_id: Mapped[int] = mapped_column(ForeignKey('programs.id', ondelete='CASCADE'), nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    remark_text: Mapped[str] = mapped_column(Text, nullable=False)
    remarked_by: Mapped[Optional[int]] = mapped_column(Integer)
    remarked_by_name: Mapped[Optional[str]] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    program = relationship('ProgramRecord', back_populates='remarks')
    __table_args__ = (UniqueConstraint('program_id', 'seq', name='uq_program_remark_seq'),)
