"""
Report frames and file rendering.

Report builders turn repository rows into pandas DataFrames with Arabic column
headers; render_dataframe serializes a frame to csv, xlsx or pdf bytes.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd
from openpyxl.utils import get_column_letter

STATUS_LABELS = {
    "open": "مفتوح",
    "in_progress": "جاري العمل",
    "pending_approval": "بانتظار الموافقة",
    "resolved": "تم الحل",
    "closed": "مغلق",
    "rejected": "مرفوض",
    "on_hold": "معلق",
}
PRIORITY_LABELS = {
    "low": "منخفض",
    "medium": "متوسط",
    "high": "عالي",
    "critical": "حرج",
}

NO_BRANCH = "غير محدد"
GENERAL_CATEGORY = "عام"
UNASSIGNED = "غير معين"
DATE_FORMAT = "%Y/%m/%d %H:%M"

TICKET_REPORT_COLUMNS = [
    "رقم البلاغ",
    "تاريخ الإنشاء",
    "تاريخ الإغلاق",
    "الفرع",
    "التصنيف",
    "الفني",
    "الحالة",
    "الأولوية",
    "التكلفة",
    "الوصف",
]
TICKET_REPORT_WIDTHS = [10, 20, 20, 20, 15, 20, 15, 10, 10, 50]
TICKET_REPORT_SHEET = "Maintenance Report"

EXPORT_FORMATS = ("csv", "xlsx", "pdf")
MEDIA_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


@dataclass
class RenderedReport:
    content: bytes
    media_type: str
    filename: str


def _fmt_date(value: Optional[datetime]) -> str:
    return value.strftime(DATE_FORMAT) if value else "-"


# PUBLIC_INTERFACE
def report_filename(base: str, today: Optional[datetime] = None) -> str:
    """Dated file name stem, e.g. Maintenance_Report_2024-05-01."""
    today = today or datetime.now(timezone.utc)
    return f"{base}_{today.strftime('%Y-%m-%d')}"


# PUBLIC_INTERFACE
def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Start of a reporting period: week, month, year; None for all."""
    now = now or datetime.now(timezone.utc)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    if period == "year":
        return now - timedelta(days=365)
    return None


# PUBLIC_INTERFACE
def ticket_report_frame(rows: Iterable[Sequence[Any]]) -> pd.DataFrame:
    """
    Build the maintenance report.

    rows are (ticket, branch_name, brand_name, category_name, technician_name)
    as returned by TicketRepository.list_with_names.
    """
    records: List[Dict[str, Any]] = []
    for ticket, branch_name, _brand, category_name, technician_name in rows:
        records.append(
            {
                "رقم البلاغ": ticket.ticket_number,
                "تاريخ الإنشاء": _fmt_date(ticket.created_at),
                "تاريخ الإغلاق": _fmt_date(ticket.closed_at),
                "الفرع": branch_name or NO_BRANCH,
                "التصنيف": category_name or ticket.fault_category or GENERAL_CATEGORY,
                "الفني": technician_name or UNASSIGNED,
                "الحالة": STATUS_LABELS.get(ticket.status, ticket.status),
                "الأولوية": PRIORITY_LABELS.get(ticket.priority, ticket.priority),
                "التكلفة": float(ticket.repair_cost or 0),
                "الوصف": ticket.description or "",
            }
        )
    return pd.DataFrame.from_records(records, columns=TICKET_REPORT_COLUMNS)


# PUBLIC_INTERFACE
def technician_performance_frame(rows: Iterable[Sequence[Any]]) -> pd.DataFrame:
    """Per-technician totals: tickets, completed (resolved or closed), completion rate and repair cost."""
    columns = ["الفني", "إجمالي البلاغات", "البلاغات المنجزة", "نسبة الإنجاز", "إجمالي التكلفة"]
    records = [
        {
            "technician": technician_name or UNASSIGNED,
            "done": ticket.status in ("resolved", "closed"),
            "cost": float(ticket.repair_cost or 0),
        }
        for ticket, _branch, _brand, _category, technician_name in rows
    ]
    if not records:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame.from_records(records)
    grouped = df.groupby("technician", sort=False).agg(
        total=("done", "size"),
        completed=("done", "sum"),
        cost=("cost", "sum"),
    )
    grouped["rate"] = (grouped["completed"] / grouped["total"] * 100).round().astype(int).astype(str) + "%"
    grouped = grouped.sort_values("completed", ascending=False).reset_index()
    out = grouped[["technician", "total", "completed", "rate", "cost"]]
    out.columns = columns
    return out


# PUBLIC_INTERFACE
def inventory_frame(parts: Iterable[Any], category_names: Mapping[Any, str]) -> pd.DataFrame:
    """Stock listing with value and a low-stock flag, lowest quantities first."""
    columns = ["اسم القطعة", "رقم القطعة", "التصنيف", "الكمية", "الحد الأدنى", "السعر", "قيمة المخزون", "الحالة"]
    records = []
    for part in sorted(parts, key=lambda p: p.quantity):
        price = float(part.price or 0)
        records.append(
            {
                "اسم القطعة": part.name_ar,
                "رقم القطعة": part.part_number or "-",
                "التصنيف": category_names.get(part.category_id, GENERAL_CATEGORY),
                "الكمية": part.quantity,
                "الحد الأدنى": part.min_threshold,
                "السعر": price,
                "قيمة المخزون": round(price * part.quantity, 2),
                "الحالة": "منخفض" if part.quantity <= part.min_threshold else "متوفر",
            }
        )
    return pd.DataFrame.from_records(records, columns=columns)


# PUBLIC_INTERFACE
def asset_frame(
    assets: Iterable[Any],
    branch_names: Mapping[Any, str],
    category_names: Mapping[Any, str],
    repair_totals: Mapping[Any, tuple[int, float]],
) -> pd.DataFrame:
    """
    Asset listing with ticket counts and accumulated repair cost.

    repair_totals maps asset id to (ticket_count, total_repair_cost).
    """
    columns = [
        "اسم المعدة",
        "الرقم التسلسلي",
        "الفرع",
        "التصنيف",
        "الحالة",
        "سعر الشراء",
        "عدد البلاغات",
        "إجمالي تكلفة الإصلاح",
    ]
    records = []
    for asset in assets:
        count, cost = repair_totals.get(asset.id, (0, 0.0))
        records.append(
            {
                "اسم المعدة": asset.name,
                "الرقم التسلسلي": asset.serial_number or "-",
                "الفرع": branch_names.get(asset.branch_id, NO_BRANCH),
                "التصنيف": category_names.get(asset.category_id, GENERAL_CATEGORY),
                "الحالة": asset.status,
                "سعر الشراء": float(asset.purchase_price or 0),
                "عدد البلاغات": count,
                "إجمالي تكلفة الإصلاح": round(float(cost), 2),
            }
        )
    return pd.DataFrame.from_records(records, columns=columns)


def _pdf_bytes(df: pd.DataFrame, title: str) -> bytes:
    # Render a simple table using reportlab
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import landscape, letter
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Table, TableStyle

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(letter), leftMargin=18, rightMargin=18, topMargin=18, bottomMargin=18
    )
    styles = getSampleStyleSheet()
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    elements: list = [Paragraph(f"{title} ({stamp})", styles["Title"])]

    data = [list(df.columns)] + df.astype(str).values.tolist()
    table = Table(data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
                ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ]
        )
    )
    elements.append(table)
    doc.build(elements)
    return buffer.getvalue()


# PUBLIC_INTERFACE
def render_dataframe(
    df: pd.DataFrame,
    filename_base: str,
    export_format: str = "xlsx",
    *,
    sheet_name: str = "Report",
    column_widths: Optional[Sequence[int]] = None,
) -> RenderedReport:
    """
    Serialize a DataFrame for download.

    Supported formats:
      - csv: UTF-8 with BOM so spreadsheet apps detect Arabic text
      - xlsx: openpyxl workbook, optional per-column character widths
      - pdf: simple tabular rendering with reportlab
    Unknown formats fall back to csv.
    """
    export_format = (export_format or "xlsx").lower()
    if export_format in ("excel", "xls"):
        export_format = "xlsx"

    if export_format == "xlsx":
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name=sheet_name)
            if column_widths:
                sheet = writer.sheets[sheet_name]
                for idx, width in enumerate(column_widths, start=1):
                    sheet.column_dimensions[get_column_letter(idx)].width = width
        content = buffer.getvalue()
    elif export_format == "pdf":
        content = _pdf_bytes(df, filename_base.replace("_", " "))
    else:
        export_format = "csv"
        content = df.to_csv(index=False).encode("utf-8-sig")

    return RenderedReport(
        content=content,
        media_type=MEDIA_TYPES[export_format],
        filename=f"{filename_base}.{export_format}",
    )
