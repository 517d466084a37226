import asyncio
from datetime import datetime, timezone
from uuid import uuid4

from maintenance_api.importers.base import ImportReport
from maintenance_api.importers.branches import BranchLookups, parse_branches
from maintenance_api.importers.brands import parse_brands
from maintenance_api.importers.categories import parse_categories
from maintenance_api.importers.excel import pick
from maintenance_api.importers import inventory
from maintenance_api.importers.inventory import on_hand_quantity, parse_inventory
from maintenance_api.importers.matching import BranchMatcher
from maintenance_api.importers.profiles import parse_team, role_from_title
from maintenance_api.importers.sectors_areas import parse_sector_matrix
from maintenance_api.importers.tickets import (
    BRANCH_COLUMN,
    DESCRIPTION_COLUMN,
    FAULT_TYPE_COLUMN,
    PARTS_COLUMN,
    STATUS_COLUMN,
    STEPS_COLUMN,
    TECHNICIAN_COLUMN,
    TIMESTAMP_COLUMN,
    build_description,
    parse_reports,
    status_from_report,
)


def test_pick_tries_alternatives_and_trims_headers():
    row = {"اسم الفرع ": None, " Branch Name": "Maadi"}
    assert pick(row, ("اسم الفرع ", "Branch Name")) == "Maadi"
    assert pick({}, ("x",)) is None


def test_branch_matcher_exact_then_containment():
    maadi, nasr = uuid4(), uuid4()
    matcher = BranchMatcher({"فرع المعادي": maadi, "فرع مدينة نصر": nasr})
    assert matcher.match("فرع مدينه نصر") == nasr
    assert matcher.match("المعادي") == maadi
    assert matcher.match("فرع المعادي الجديد") == maadi
    assert matcher.match("الاسكندرية") is None
    assert matcher.match(None) is None


def test_branch_matcher_first_match_wins():
    first, second = uuid4(), uuid4()
    matcher = BranchMatcher({"مول العرب": first, "مول العرب 2": second})
    assert matcher.match("العرب") == first
    assert matcher.match("مول العرب 2") == second


def test_parse_brands_dedupes_and_reports_blank_rows():
    report = ImportReport(name="brands")
    rows = [{"البراند": "بلبن"}, {"Brand Name": "بلبن "}, {"name": None}, {"اسم": "كشري"}]
    assert parse_brands(rows, report) == [{"name_ar": "بلبن"}, {"name_ar": "كشري"}]
    assert report.processed == 4
    assert report.skipped == 1
    assert [(e.row, e.message) for e in report.errors] == [(4, "Brand Name is required")]


def test_parse_sector_matrix():
    grid = [
        ["title", None, None],
        [None, None, None],
        ["قطاع القاهرة", "ab", "قطاع الدلتا"],
        ["المعادي", "x", "طنطا"],
        ["مدينة نصر", None, "ب"],
        ["المعادي", None, None],
    ]
    assert parse_sector_matrix(grid) == {
        "قطاع القاهره": ["المعادي", "مدينه نصر"],
        "قطاع الدلتا": ["طنطا"],
    }
    assert parse_sector_matrix([[], []]) == {}


def _lookups():
    maadi, delta_area, brand = uuid4(), uuid4(), uuid4()
    lookups = BranchLookups(
        areas={"المعادي": maadi},
        area_sectors=[(delta_area, "طنطا", "الدلتا"), (maadi, "المعادي", "القاهرة")],
        brands={"بلبن": brand},
    )
    return lookups, maadi, delta_area, brand


def test_area_lookup_order():
    lookups, maadi, delta_area, _ = _lookups()
    assert lookups.area_for("المعادي") == maadi
    assert lookups.area_for("Delta") == delta_area
    assert lookups.area_for("الدلتا") == delta_area
    assert lookups.area_for("cairo") == maadi
    assert lookups.area_for("nowhere") is None


def test_parse_branches():
    lookups, maadi, delta_area, brand = _lookups()
    report = ImportReport(name="branches")
    rows = [
        {"اسم الفرع ": "فرع المعادي", "Zone": "المعادي", "Location": "https://maps.example/1", "العنوان": "شارع 9"},
        {"Branch Name": "فرع طنطا", "Area": "deltas", "Brand": "غير موجود"},
        {"Branch Name": "فرع بلا منطقة"},
        {"Branch Name": "فرع مجهول", "Area": "mars"},
    ]
    branches = parse_branches(rows, lookups, report)
    assert branches[0] == {
        "name_ar": "فرع المعادي",
        "area_id": maadi,
        "brand_id": brand,
        "address": "شارع 9",
        "google_map_link": "https://maps.example/1",
    }
    assert branches[1]["area_id"] == delta_area
    assert branches[1]["brand_id"] == brand
    assert branches[1]["google_map_link"] is None
    assert [(e.row, e.message) for e in report.errors] == [
        (4, "Area Name is required"),
        (5, "Area or Sector not found: mars"),
    ]


def test_role_from_title():
    assert role_from_title("مدير صيانة") == "manager"
    assert role_from_title("منسق") == "manager"
    assert role_from_title("أمين مخزن") == "manager"
    assert role_from_title("فني تكييف") == "technician"
    assert role_from_title(None) == "technician"


def test_parse_team():
    banner = [[None] * 9 for _ in range(4)]
    grid = banner + [
        [1, "قطاع القاهرة", "المعادي", None, None, "محمود  علي", 1520.0, None, "مدير منطقة"],
        [2, "قطاع القاهرة", "المعادي", None, None, "بدون كود", None, None, "فني"],
        [3, "قطاع الدلتا", "طنطا", None, None, "سعيد", "88", None, None],
    ]
    report = ImportReport(name="profiles")
    members = parse_team(grid, "example.com", report)
    assert [m.email for m in members] == ["u1520@example.com", "u88@example.com"]
    assert members[0].full_name == "محمود علي"
    assert members[0].role == "manager"
    assert members[0].sector == "قطاع القاهره"
    assert members[0].row == 5
    assert members[1].role == "technician"
    assert members[1].specialization is None
    assert report.processed == 2


def test_status_from_report():
    assert status_from_report("تم الاصلاح") == "closed"
    assert status_from_report("قابل للإصلاح وبحاجة لقطع غيار") == "in_progress"
    assert status_from_report("جاري الفحص") == "open"
    assert status_from_report(None) == "open"


def test_build_description():
    assert build_description("تسريب مياه", "لا يوجد", None) == "تسريب مياه"
    assert build_description("تسريب", "جلبة", "تغيير الجلبة") == (
        "تسريب\n\n[قطع الغيار]: جلبة\n\n[خطوات الاصلاح]: تغيير الجلبة"
    )


def test_parse_reports():
    branch, tech = uuid4(), uuid4()
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rows = [
        {
            TECHNICIAN_COLUMN: "أحمد سامي",
            BRANCH_COLUMN: "المعادي",
            FAULT_TYPE_COLUMN: "تكييف",
            DESCRIPTION_COLUMN: "لا يبرد",
            STATUS_COLUMN: "تم الاصلاح",
            STEPS_COLUMN: None,
            PARTS_COLUMN: "لا يوجد",
            TIMESTAMP_COLUMN: 45000,
        },
        {BRANCH_COLUMN: "فرع غير معروف", STATUS_COLUMN: "مفتوح"},
        {BRANCH_COLUMN: "فرع المعادي", FAULT_TYPE_COLUMN: None},
    ]
    report = ImportReport(name="tickets")
    tickets = parse_reports(rows, BranchMatcher({"فرع المعادي": branch}), {"احمد سامي": tech}, report, now=now)
    assert report.processed == 3 and report.skipped == 1
    first, second = tickets
    assert first["technician_id"] == tech
    assert first["status"] == "closed"
    assert first["created_at"] == datetime(2023, 3, 15, tzinfo=timezone.utc)
    assert first["closed_at"] == first["created_at"]
    assert first["fault_category"] == "تكييف"
    assert second["technician_id"] is None
    assert second["fault_category"] == "other"
    assert second["created_at"] == now
    assert second["closed_at"] is None
    assert second["images_url"] == []


def test_parse_categories():
    report = ImportReport(name="categories")
    rows = [{FAULT_TYPE_COLUMN: "كهرباء"}, {FAULT_TYPE_COLUMN: "سباكة"}, {FAULT_TYPE_COLUMN: "كهرباء"}, {}]
    assert parse_categories(rows, report) == ["كهرباء", "سباكة"]
    assert report.skipped == 2


INVENTORY_GRID = [
    ["WarehouseId", "WarehouseName", "ItemNumber", "ProductName", "OnHandQuantity"],
    [1, "المخزن الرئيسي", 1001, "فلتر زيت", "1,250"],
    [1, "المخزن الرئيسي", 1002, "سير", 2.5],
    [1, "المخزن الرئيسي", 1004, None, 4],
    [None, None, None, None, None],
    [1, "المخزن الرئيسي", 1001, "فلتر زيت مكرر", 2],
    [1, "المخزن الرئيسي", None, "مسمار", "abc"],
    [1, "المخزن الرئيسي", 1003, "ترس", -3],
]


def test_on_hand_quantity():
    assert on_hand_quantity("1,250") == 1250
    assert on_hand_quantity(2.5) == 3
    assert on_hand_quantity(2.4) == 2
    assert on_hand_quantity(None) == 0
    assert on_hand_quantity("n/a") == 0


def test_parse_inventory():
    report = ImportReport(name="inventory")
    parts = parse_inventory(INVENTORY_GRID, report)
    assert [(p["name_ar"], p["part_number"], p["quantity"]) for p in parts] == [
        ("فلتر زيت", "1001", 1250),
        ("سير", "1002", 3),
        ("مسمار", None, 0),
    ]
    assert all(p["min_threshold"] == 5 for p in parts)
    assert report.processed == 6
    assert report.skipped == 2
    assert [e.row for e in report.errors] == [8]


class FakePartRepo:
    def __init__(self, numbers=(), names=()):
        self.numbers, self.names = set(numbers), set(names)
        self.inserted = []
        self.commits = 0

    async def part_keys(self):
        return self.numbers, self.names

    async def insert_many(self, rows):
        self.inserted.extend(rows)
        return len(rows)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        pass


def _run_inventory_import(monkeypatch, repo, dry_run=False):
    monkeypatch.setattr(inventory, "data_file", lambda name, path=None: name)
    monkeypatch.setattr(inventory, "read_grid", lambda path: INVENTORY_GRID)
    monkeypatch.setattr(inventory, "SparePartRepository", lambda session: repo)
    return asyncio.run(inventory.import_inventory(None, dry_run=dry_run))


def test_import_inventory_skips_known_parts(monkeypatch):
    repo = FakePartRepo(numbers={"1002"}, names={"مسمار"})
    report = _run_inventory_import(monkeypatch, repo)
    assert [p["name_ar"] for p in repo.inserted] == ["فلتر زيت"]
    assert report.written == 1
    assert report.skipped == 4
    assert repo.commits == 1


def test_import_inventory_dry_run_writes_nothing(monkeypatch):
    repo = FakePartRepo()
    report = _run_inventory_import(monkeypatch, repo, dry_run=True)
    assert repo.inserted == []
    assert report.written == 0
    assert report.dry_run
