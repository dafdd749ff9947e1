"""initial job finance schema

Revision ID: a1f3c9e2d7b4
Revises:
Create Date: 2025-10-06 09:12:40.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "a1f3c9e2d7b4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "AppUser",
        sa.Column("UserID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("Username", sa.String(50), nullable=False, unique=True),
        sa.Column("FullName", sa.String(100)),
        sa.Column("Email", sa.String(200)),
        sa.Column("HashedPassword", sa.String(255), nullable=False),
        sa.Column("Role", sa.String(20), nullable=False, server_default=sa.text("'viewer'")),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("CreatedAt", sa.DateTime(), nullable=False),
        sa.CheckConstraint("Role in ('viewer','operator','manager','admin')", name="CK_AppUser_Role"),
    )
    op.create_table(
        "AppSetting",
        sa.Column("Key", sa.String(100), primary_key=True),
        sa.Column("Value", sa.String(500), nullable=False),
        sa.Column("UpdatedAt", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "Job",
        sa.Column("JobID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("Number", sa.String(30), nullable=False, unique=True),
        sa.Column("Label", sa.String(200), nullable=False),
        sa.Column("Client", sa.String(200)),
        sa.Column("TargetRevenue", sa.DECIMAL(12, 2), nullable=False),
        sa.Column("TargetHoursFab", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("TargetHoursSer", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("TargetHoursPose", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("HourlyRate", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("PlannedStart", sa.Date()),
        sa.Column("PlannedEnd", sa.Date()),
        sa.Column("ActualStart", sa.Date()),
        sa.Column("ActualEnd", sa.Date()),
        sa.Column("TotalOrdered", sa.DECIMAL(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("TotalReceived", sa.DECIMAL(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("CreatedAt", sa.DateTime(), nullable=False),
        sa.CheckConstraint("TargetRevenue >= 0", name="CK_Job_TargetRevenue_NonNeg"),
        sa.CheckConstraint("HourlyRate >= 0", name="CK_Job_HourlyRate_NonNeg"),
    )
    op.create_table(
        "Quote",
        sa.Column("QuoteID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("JobID", sa.Integer(), sa.ForeignKey("Job.JobID"), nullable=False, index=True),
        sa.Column("Number", sa.String(30), nullable=False),
        sa.Column("AmountHT", sa.DECIMAL(12, 2), nullable=False),
        sa.Column("Status_s", sa.String(20), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.CheckConstraint("AmountHT >= 0", name="CK_Quote_Amount_NonNeg"),
        sa.CheckConstraint("Status_s IN ('DRAFT','VALIDATED','DONE','REJECTED')", name="CK_Quote_Status"),
    )
    op.create_table(
        "TimeEntry",
        sa.Column("EntryID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("JobID", sa.Integer(), sa.ForeignKey("Job.JobID"), nullable=False, index=True),
        sa.Column("Phase", sa.String(10), nullable=False),
        sa.Column("Hours", sa.DECIMAL(8, 2), nullable=False),
        sa.Column("EntryDate", sa.Date(), nullable=False),
        sa.Column("Operator", sa.String(100)),
        sa.CheckConstraint("Hours > 0", name="CK_TimeEntry_Hours_Positive"),
        sa.CheckConstraint("Phase IN ('FAB','SER','POSE')", name="CK_TimeEntry_Phase"),
    )
    op.create_table(
        "PurchaseCategory",
        sa.Column("CategoryID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("Code", sa.String(30), nullable=False, unique=True),
        sa.Column("Label", sa.String(150), nullable=False),
    )
    op.create_table(
        "OrderCounter",
        sa.Column("Year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("LastSeq", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint("LastSeq >= 0", name="CK_OrderCounter_LastSeq_NonNeg"),
    )
    op.create_table(
        "PurchaseOrder",
        sa.Column("OrderID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("Number", sa.String(30), nullable=False, unique=True),
        sa.Column("SupplierName", sa.String(200), nullable=False),
        sa.Column("JobID", sa.Integer(), sa.ForeignKey("Job.JobID"), nullable=False, index=True),
        sa.Column("CategoryID", sa.Integer(), sa.ForeignKey("PurchaseCategory.CategoryID"), nullable=False, index=True),
        sa.Column("AmountHT", sa.DECIMAL(12, 2), nullable=False),
        sa.Column("OrderDate", sa.Date(), nullable=False),
        sa.Column("RequestedDeliveryDate", sa.Date()),
        sa.Column("ReceptionDate", sa.Date()),
        sa.Column("Comment", sa.String(1000)),
        sa.Column("Status_s", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("AttachmentPath", sa.String(500)),
        sa.Column("CreatedBy", sa.String(50)),
        sa.Column("CreatedAt", sa.DateTime(), nullable=False),
        sa.Column("ValidatedBy", sa.String(50)),
        sa.Column("ValidatedAt", sa.DateTime()),
        sa.Column("CancelledBy", sa.String(50)),
        sa.Column("CancelledAt", sa.DateTime()),
        sa.Column("ReceivedBy", sa.String(50)),
        sa.CheckConstraint("AmountHT >= 0", name="CK_PO_Amount_NonNeg"),
        sa.CheckConstraint("Status_s IN ('PENDING','VALIDATED','RECEIVED','CANCELLED')", name="CK_PO_Status"),
    )
    op.create_table(
        "OverheadItem",
        sa.Column("ItemID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("Label", sa.String(200), nullable=False, unique=True),
        sa.Column("MonthlyAmountHT", sa.DECIMAL(12, 2), nullable=False),
        sa.Column("MonthlyAmountTTC", sa.DECIMAL(12, 2), nullable=False),
        sa.Column("Category", sa.String(30), nullable=False, server_default=sa.text("'AUTRE'")),
        sa.Column("DisplayOrder", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.text("1"), index=True),
        sa.Column("StartDate", sa.Date()),
        sa.Column("EndDate", sa.Date(), index=True),
        sa.Column("Comment", sa.String(1000)),
        sa.Column("Version", sa.Integer(), nullable=False),
        sa.Column("UpdatedAt", sa.DateTime(), nullable=False),
        sa.CheckConstraint("MonthlyAmountHT >= 0", name="CK_Overhead_HT_NonNeg"),
        sa.CheckConstraint("MonthlyAmountTTC >= 0", name="CK_Overhead_TTC_NonNeg"),
        sa.CheckConstraint("EndDate IS NULL OR StartDate IS NULL OR EndDate >= StartDate", name="CK_Overhead_Window"),
    )
    op.create_table(
        "PurchaseEstimation",
        sa.Column("EstimationID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("JobID", sa.Integer(), sa.ForeignKey("Job.JobID"), nullable=False, unique=True),
        sa.Column("TargetPct", sa.DECIMAL(5, 2), nullable=False),
        sa.Column("TargetAmount", sa.DECIMAL(12, 2), nullable=False),
        sa.Column("UpdatedAt", sa.DateTime(), nullable=False),
        sa.CheckConstraint("TargetPct >= 0 AND TargetPct <= 100", name="CK_Estimation_Pct_Range"),
    )
    op.create_table(
        "EstimationCategory",
        sa.Column("LineID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "EstimationID", sa.Integer(),
            sa.ForeignKey("PurchaseEstimation.EstimationID", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("CategoryID", sa.Integer(), sa.ForeignKey("PurchaseCategory.CategoryID"), nullable=False),
        sa.Column("Position", sa.Integer(), nullable=False),
        sa.Column("Mode", sa.String(10), nullable=False, server_default=sa.text("'percent'")),
        sa.Column("Percent", sa.DECIMAL(7, 2), nullable=False),
        sa.Column("FixedAmount", sa.DECIMAL(12, 2)),
        sa.UniqueConstraint("EstimationID", "CategoryID", name="UQ_EstimationCategory"),
        sa.CheckConstraint("Mode IN ('percent','amount')", name="CK_EstimationCategory_Mode"),
        sa.CheckConstraint("Percent >= 0", name="CK_EstimationCategory_Percent_NonNeg"),
        sa.CheckConstraint("FixedAmount IS NULL OR FixedAmount >= 0", name="CK_EstimationCategory_Amount_NonNeg"),
    )


def downgrade() -> None:
    for table in (
        "EstimationCategory", "PurchaseEstimation", "OverheadItem", "PurchaseOrder", "OrderCounter",
        "PurchaseCategory", "TimeEntry", "Quote", "Job", "AppSetting", "AppUser",
    ):
        op.drop_table(table)
