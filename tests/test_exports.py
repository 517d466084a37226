import asyncio
import io
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pandas as pd

from maintenance_api.services.exports import (
    TICKET_REPORT_COLUMNS,
    asset_frame,
    inventory_frame,
    period_start,
    render_dataframe,
    report_filename,
    technician_performance_frame,
    ticket_report_frame,
)
from maintenance_api.services.reports import REPORT_ROW_LIMIT, ReportService


def _ticket(**kw):
    values = dict(
        ticket_number=1,
        created_at=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
        closed_at=None,
        fault_category=None,
        status="open",
        priority="high",
        repair_cost=0,
        description=None,
    )
    values.update(kw)
    return SimpleNamespace(**values)


def test_ticket_report_frame_labels_and_defaults():
    rows = [(_ticket(), None, None, None, None)]
    df = ticket_report_frame(rows)
    assert list(df.columns) == TICKET_REPORT_COLUMNS
    row = df.iloc[0]
    assert row["تاريخ الإنشاء"] == "2024/05/01 09:30"
    assert row["تاريخ الإغلاق"] == "-"
    assert row["الفرع"] == "غير محدد"
    assert row["التصنيف"] == "عام"
    assert row["الفني"] == "غير معين"
    assert row["الحالة"] == "مفتوح"
    assert row["الأولوية"] == "عالي"


def test_technician_performance_frame():
    rows = [
        (_ticket(status="closed", repair_cost=100), "b", None, None, "علي"),
        (_ticket(status="open", repair_cost=50), "b", None, None, "علي"),
        (_ticket(status="resolved"), "b", None, None, "سامي"),
    ]
    df = technician_performance_frame(rows)
    ali = df[df["الفني"] == "علي"].iloc[0]
    assert ali["إجمالي البلاغات"] == 2
    assert ali["البلاغات المنجزة"] == 1
    assert ali["نسبة الإنجاز"] == "50%"
    assert ali["إجمالي التكلفة"] == 150.0
    assert technician_performance_frame([]).empty


def test_inventory_frame_flags_low_stock():
    cat = uuid4()
    parts = [
        SimpleNamespace(name_ar="فلتر", part_number=None, category_id=cat, quantity=10, min_threshold=2, price=5),
        SimpleNamespace(name_ar="مروحة", part_number="F-1", category_id=None, quantity=1, min_threshold=3, price=None),
    ]
    df = inventory_frame(parts, {cat: "تكييف"})
    assert list(df["اسم القطعة"]) == ["مروحة", "فلتر"]
    assert list(df["الحالة"]) == ["منخفض", "متوفر"]
    assert df.iloc[1]["قيمة المخزون"] == 50.0
    assert df.iloc[1]["التصنيف"] == "تكييف"


def test_asset_frame_includes_repair_totals():
    asset_id, branch = uuid4(), uuid4()
    assets = [
        SimpleNamespace(
            id=asset_id, name="ثلاجة", serial_number=None, branch_id=branch, category_id=None,
            status="active", purchase_price=1000,
        )
    ]
    df = asset_frame(assets, {branch: "فرع المعادي"}, {}, {asset_id: (3, 99.999)})
    row = df.iloc[0]
    assert row["الفرع"] == "فرع المعادي"
    assert row["عدد البلاغات"] == 3
    assert row["إجمالي تكلفة الإصلاح"] == 100.0


def test_render_csv_has_bom():
    report = render_dataframe(pd.DataFrame({"الاسم": ["علي"]}), "Report_2024-01-01", "csv")
    assert report.content.startswith(b"\xef\xbb\xbf")
    assert report.filename == "Report_2024-01-01.csv"
    assert report.media_type == "text/csv"


def test_render_xlsx_round_trips():
    df = pd.DataFrame({"الاسم": ["علي", "سارة"], "العدد": [1, 2]})
    report = render_dataframe(df, "Report", "excel", column_widths=[20, 10])
    assert report.filename == "Report.xlsx"
    back = pd.read_excel(io.BytesIO(report.content), engine="openpyxl")
    assert list(back["الاسم"]) == ["علي", "سارة"]


def test_render_pdf_and_unknown_format():
    df = pd.DataFrame({"a": [1]})
    assert render_dataframe(df, "R", "pdf").content.startswith(b"%PDF")
    assert render_dataframe(df, "R", "docx").filename == "R.csv"


def test_report_filename_and_periods():
    now = datetime(2024, 5, 31, tzinfo=timezone.utc)
    assert report_filename("Maintenance_Report", now) == "Maintenance_Report_2024-05-31"
    assert period_start("week", now) == datetime(2024, 5, 24, tzinfo=timezone.utc)
    assert period_start("all", now) is None


class FakeParts:
    def __init__(self, parts):
        self.parts = parts
        self.limit = None

    async def list_parts(self, limit=100, **kw):
        self.limit = limit
        return self.parts


class FakeCategories:
    def __init__(self, names):
        self.names = names

    async def category_names(self):
        return self.names


def test_inventory_report_service_renders_parts():
    cat = uuid4()
    service = ReportService(None)
    service.parts = FakeParts(
        [SimpleNamespace(name_ar="فلتر", part_number="F-1", category_id=cat, quantity=2, min_threshold=5, price=10)]
    )
    service.assets = FakeCategories({cat: "تكييف"})

    report = asyncio.run(service.inventory_report("csv"))

    assert service.parts.limit == REPORT_ROW_LIMIT
    assert report.filename.startswith("Inventory_Report_")
    text = report.content.decode("utf-8-sig")
    assert "فلتر" in text
    assert "تكييف" in text
    assert "منخفض" in text
