# Overview: Pytest coverage for attendance, leave, holidays and salary history.

"""
Attendance and Calendar Tests

Covers:
- Bulk present/absent marking with already-marked employees skipped
- Find-or-create corrections and deletion
- Strict parsing of boolean attendance flags
- Leave approval flow and the approved-only filter
- Shop and global holidays
- Salary history statuses
"""

from datetime import date
from decimal import Decimal

from shopcore.models import AttendanceRecord, Employee
from shopcore.services import attendance_service, calendar_service, salary_history_service


class TestAttendance:
    def test_mark_present_many(self, db_session, shop_a, branch_a, employee_a):
        colleague = Employee(shop_id=branch_a.id, full_name="Carol Branch", base_salary=Decimal("25000"))
        db_session.add(colleague)
        db_session.commit()

        result = attendance_service.mark_present([shop_a.id, branch_a.id], [employee_a.id, colleague.id], "2025-06-02")
        assert result.status is True
        assert len(result.data["records"]) == 2
        assert result.data["skipped_employee_ids"] == []

    def test_already_marked_is_skipped(self, db_session, shop_a, employee_a):
        attendance_service.mark_present([shop_a.id], [employee_a.id], "2025-06-02")
        again = attendance_service.mark_present([shop_a.id], [employee_a.id], "2025-06-02")
        assert again.status is False
        assert again.error == "INVALID_REQUEST"
        assert db_session.query(AttendanceRecord).count() == 1

    def test_mark_absent_half_day(self, db_session, shop_a, employee_a):
        result = attendance_service.mark_absent([shop_a.id], [employee_a.id], "2025-06-03", is_half_day=True, notes="clinic")
        record = result.data["records"][0]
        assert record["is_half_day"] is True
        assert record["is_full_absent"] is False
        assert record["notes"] == "clinic"

    def test_mark_absent_full(self, db_session, shop_a, employee_a):
        record = attendance_service.mark_absent([shop_a.id], [employee_a.id], "2025-06-03").data["records"][0]
        assert record["is_full_absent"] is True

    def test_foreign_employee(self, db_session, shop_a, employee_b):
        result = attendance_service.mark_present([shop_a.id], [employee_b.id], "2025-06-02")
        assert result.error == "EMPLOYEE_NOT_FOUND"

    def test_update_creates_missing_record(self, db_session, shop_a, employee_a):
        result = attendance_service.update_attendance(
            [shop_a.id], employee_a.id, "2025-06-04", {"late_minutes": 15, "extra_minutes": 30}
        )
        assert result.status is True
        assert result.data["late_minutes"] == 15
        assert result.data["extra_minutes"] == 30

        attendance_service.update_attendance([shop_a.id], employee_a.id, "2025-06-04", {"late_minutes": 0})
        record = db_session.query(AttendanceRecord).one()
        assert (record.late_minutes, record.extra_minutes) == (0, 30)

    def test_negative_minutes_rejected(self, db_session, shop_a, employee_a):
        result = attendance_service.update_attendance([shop_a.id], employee_a.id, "2025-06-04", {"late_minutes": -1})
        assert result.error == "INVALID_REQUEST"
        assert db_session.query(AttendanceRecord).count() == 0

    def test_string_flags_are_parsed(self, db_session, shop_a, employee_a):
        result = attendance_service.update_attendance(
            [shop_a.id], employee_a.id, "2025-06-04", {"is_half_day": "false", "is_full_absent": "true"}
        )
        assert result.status is True
        assert result.data["is_half_day"] is False
        assert result.data["is_full_absent"] is True

        attendance_service.update_attendance([shop_a.id], employee_a.id, "2025-06-04", {"is_full_absent": 0})
        record = db_session.query(AttendanceRecord).one()
        assert (record.is_half_day, record.is_full_absent) == (False, False)

    def test_unrecognised_flag_rejected(self, db_session, shop_a, employee_a):
        result = attendance_service.update_attendance([shop_a.id], employee_a.id, "2025-06-04", {"is_half_day": "maybe"})
        assert result.error == "INVALID_REQUEST"
        assert result.details == {"is_half_day": "maybe"}
        assert db_session.query(AttendanceRecord).count() == 0

    def test_mark_absent_string_false_is_full_absence(self, db_session, shop_a, employee_a):
        record = attendance_service.mark_absent([shop_a.id], [employee_a.id], "2025-06-03", is_half_day="false").data["records"][0]
        assert record["is_half_day"] is False
        assert record["is_full_absent"] is True

        bad = attendance_service.mark_absent([shop_a.id], [employee_a.id], "2025-06-05", is_half_day=2)
        assert bad.error == "INVALID_REQUEST"

    def test_delete(self, db_session, shop_a, employee_a):
        attendance_service.mark_present([shop_a.id], [employee_a.id], "2025-06-02")
        assert attendance_service.delete_attendance([shop_a.id], employee_a.id, "2025-06-02").status is True
        missing = attendance_service.delete_attendance([shop_a.id], employee_a.id, "2025-06-02")
        assert missing.status is False

    def test_list_range(self, db_session, shop_a, employee_a):
        for day in ("2025-06-03", "2025-06-02", "2025-07-01"):
            attendance_service.mark_present([shop_a.id], [employee_a.id], day)
        result = attendance_service.list_attendance([shop_a.id], employee_a.id, "2025-06-01", "2025-06-30")
        assert [r["date"] for r in result.data["records"]] == ["2025-06-02", "2025-06-03"]


class TestLeave:
    def _request(self, shop, employee):
        return calendar_service.create_leave_request(
            [shop.id], {"employee_id": employee.id, "start_date": "2025-06-02", "end_date": "2025-06-04"}
        ).data

    def test_only_approved_leave_counts(self, db_session, shop_a, employee_a):
        leave = self._request(shop_a, employee_a)
        assert leave["status"] == "pending"
        assert calendar_service.approved_leave_dates(employee_a.id, date(2025, 6, 1), date(2025, 6, 30)) == set()

        approved = calendar_service.update_leave_status([shop_a.id], 5, leave["id"], "approved")
        assert approved.data["approved_by"] == 5
        days = calendar_service.approved_leave_dates(employee_a.id, date(2025, 6, 3), date(2025, 6, 30))
        assert days == {date(2025, 6, 3), date(2025, 6, 4)}

    def test_decided_leave_is_final(self, db_session, shop_a, employee_a):
        leave = self._request(shop_a, employee_a)
        calendar_service.update_leave_status([shop_a.id], 5, leave["id"], "rejected")
        again = calendar_service.update_leave_status([shop_a.id], 5, leave["id"], "approved")
        assert again.error == "INVALID_STATUS_TRANSITION"

    def test_reversed_range_rejected(self, db_session, shop_a, employee_a):
        result = calendar_service.create_leave_request(
            [shop_a.id], {"employee_id": employee_a.id, "start_date": "2025-06-04", "end_date": "2025-06-02"}
        )
        assert result.error == "INVALID_DATE_RANGE"

    def test_list_by_status(self, db_session, shop_a, employee_a):
        self._request(shop_a, employee_a)
        assert calendar_service.list_leave_requests([shop_a.id], {"status": "pending"}).data["pagination"]["total"] == 1
        assert calendar_service.list_leave_requests([shop_a.id], {"status": "approved"}).data["items"] == []


class TestHolidays:
    def test_shop_and_global_holidays(self, db_session, shop_a, shop_b):
        calendar_service.add_holiday([shop_a.id], {"shop_id": shop_a.id, "start_date": "2025-06-02", "end_date": "2025-06-02"})
        calendar_service.add_holiday([shop_b.id], {"shop_id": shop_b.id, "start_date": "2025-06-03", "end_date": "2025-06-03"})
        calendar_service.add_holiday([shop_a.id], {"start_date": "2025-06-10", "end_date": "2025-06-11", "description": "Eid"})

        june = (date(2025, 6, 1), date(2025, 6, 30))
        assert calendar_service.holiday_dates(*june, shop_id=shop_a.id) == {
            date(2025, 6, 2), date(2025, 6, 10), date(2025, 6, 11),
        }
        assert calendar_service.holiday_dates(*june) == {date(2025, 6, 10), date(2025, 6, 11)}

        listed = calendar_service.list_holidays([shop_a.id])
        assert listed.data["pagination"]["total"] == 2

    def test_holiday_for_foreign_shop_rejected(self, db_session, shop_a, shop_b):
        result = calendar_service.add_holiday([shop_a.id], {"shop_id": shop_b.id, "start_date": "2025-06-02", "end_date": "2025-06-02"})
        assert result.error == "UNAUTHORIZED_SHOP_ACCESS"


class TestSalaryHistory:
    def test_statuses(self, db_session, shop_a, employee_a):
        first = salary_history_service.record_salary_change([shop_a.id], employee_a.id, "30000", "2025-01")
        assert first.data["status"] == "initial"
        up = salary_history_service.record_salary_change([shop_a.id], employee_a.id, "35000", "2025-03")
        assert up.data["status"] == "promotion"
        down = salary_history_service.record_salary_change([shop_a.id], employee_a.id, "32000", "2025-05-15")
        assert down.data["status"] == "demotion"
        assert db_session.get(Employee, employee_a.id).base_salary == Decimal("32000.00")

    def test_unchanged_salary_rejected(self, db_session, shop_a, employee_a):
        salary_history_service.record_salary_change([shop_a.id], employee_a.id, "30000", "2025-01")
        same = salary_history_service.record_salary_change([shop_a.id], employee_a.id, "30000", "2025-02")
        assert same.error == "INVALID_REQUEST"

    def test_future_change_keeps_current_base(self, db_session, shop_a, employee_a):
        salary_history_service.record_salary_change([shop_a.id], employee_a.id, "30000", "2025-01")
        salary_history_service.record_salary_change([shop_a.id], employee_a.id, "45000", "2099-01")
        assert db_session.get(Employee, employee_a.id).base_salary == Decimal("30000.00")

    def test_salary_on_timeline(self, db_session, shop_a, employee_a):
        salary_history_service.record_salary_change([shop_a.id], employee_a.id, "30000", "2025-01")
        salary_history_service.record_salary_change([shop_a.id], employee_a.id, "39000", "2025-06-16")
        timeline = salary_history_service.salary_timeline(employee_a.id)
        assert salary_history_service.salary_on(timeline, date(2024, 12, 31), "1") == Decimal("1")
        assert salary_history_service.salary_on(timeline, date(2025, 6, 15), "1") == Decimal("30000.00")
        assert salary_history_service.salary_on(timeline, date(2025, 6, 16), "1") == Decimal("39000.00")

    def test_list(self, db_session, shop_a, employee_a):
        salary_history_service.record_salary_change([shop_a.id], employee_a.id, "30000", "2025-01")
        data = salary_history_service.list_salary_history([shop_a.id], employee_a.id).data
        assert data["base_salary"] == "30000.00"
        assert len(data["history"]) == 1
