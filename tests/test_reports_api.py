"""API tests for reporting endpoints: scope, zero-filling and aggregates."""

from datetime import UTC, datetime, timedelta

from tests.support import ApiTestCase, auth, make_advance, make_user


class TestReportAccess(ApiTestCase):
    def test_staff_cannot_view_reports(self) -> None:
        staff = make_user(self.db)
        for path in ("/reports/summary", "/reports/monthly-trends", "/reports/overdue-returns"):
            self.assertEnvelopeError(self.client.get(self.url(path), headers=auth(staff)), 403)

    def test_overdue_returns_is_finance_or_admin(self) -> None:
        manager = make_user(self.db, role="manager")
        r = self.client.get(self.url("/reports/overdue-returns"), headers=auth(manager))
        self.assertEnvelopeError(r, 403)

    def test_empty_dataset_gives_zeroed_reports(self) -> None:
        finance = make_user(self.db, role="finance")
        summary = self.client.get(self.url("/reports/summary"), headers=auth(finance))
        self.assertEqual(summary.status_code, 200, summary.text)
        data = summary.json()["data"]
        self.assertEqual(data["summary"]["total_requests"], 0)
        self.assertEqual(data["summary"]["total_amount"], 0)
        self.assertEqual(len(data["status_breakdown"]), 6)
        self.assertEqual(data["department_breakdown"], [])

        trends = self.client.get(
            self.url("/reports/monthly-trends"), params={"year": 2024}, headers=auth(finance)
        ).json()["data"]
        self.assertEqual(trends["year"], 2024)
        self.assertEqual([t["month"] for t in trends["monthly_trends"]], list(range(1, 13)))
        self.assertTrue(all(t["approval_rate"] == 0 for t in trends["monthly_trends"]))

        for path in ("/reports/pending-advances", "/reports/overdue-returns", "/reports/user-activity"):
            self.assertEqual(self.client.get(self.url(path), headers=auth(finance)).status_code, 200)


class TestReportAggregates(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.manager = make_user(self.db, role="manager", department="Sales")
        self.finance = make_user(self.db, role="finance", department="Finance")
        self.sales = make_user(self.db, department="Sales", first_name="Sipho")
        self.it = make_user(self.db, department="IT", first_name="Ines")
        self.it_manager = make_user(self.db, role="manager", department="IT")
        roles = {"manager": self.manager, "finance": self.finance}
        self.a1 = make_advance(self.db, self.sales, amount=100)
        self.a2 = make_advance(self.db, self.sales, status="manager_approved", amount=200, **roles)
        self.a3 = make_advance(self.db, self.sales, status="disbursed", amount=300, **roles)
        self.a4 = make_advance(
            self.db, self.it, status="rejected", amount=400, manager=self.it_manager
        )

    def test_summary_totals_for_finance(self) -> None:
        r = self.client.get(self.url("/reports/summary"), headers=auth(self.finance))
        data = r.json()["data"]
        self.assertEqual(data["summary"]["total_requests"], 4)
        self.assertEqual(data["summary"]["total_amount"], 1000)
        self.assertEqual(data["summary"]["approved_amount"], 300)
        self.assertEqual(data["summary"]["pending_amount"], 300)
        self.assertEqual(data["summary"]["disbursed_amount"], 300)
        by_status = {b["status"]: b["count"] for b in data["status_breakdown"]}
        self.assertEqual(by_status["rejected"], 1)
        self.assertEqual(by_status["retired"], 0)
        self.assertEqual(
            [d["department"] for d in data["department_breakdown"]], ["Sales", "IT"]
        )

    def test_summary_is_scoped_for_managers(self) -> None:
        r = self.client.get(self.url("/reports/summary"), headers=auth(self.manager))
        data = r.json()["data"]
        self.assertEqual(data["summary"]["total_requests"], 3)
        self.assertEqual([d["department"] for d in data["department_breakdown"]], ["Sales"])

    def test_summary_filters(self) -> None:
        r = self.client.get(
            self.url("/reports/summary"),
            params={"department": "IT", "status": "rejected"},
            headers=auth(self.finance),
        )
        self.assertEqual(r.json()["data"]["summary"]["total_requests"], 1)
        future = (datetime.now(UTC) + timedelta(days=30)).isoformat()
        r = self.client.get(
            self.url("/reports/summary"), params={"start_date": future}, headers=auth(self.finance)
        )
        self.assertEqual(r.json()["data"]["summary"]["total_requests"], 0)

    def test_user_activity(self) -> None:
        r = self.client.get(self.url("/reports/user-activity"), headers=auth(self.finance))
        rows = r.json()["data"]["user_activity"]
        self.assertEqual([row["user_id"] for row in rows], [self.sales.id, self.it.id])
        sipho = rows[0]
        self.assertEqual(sipho["total_requests"], 3)
        self.assertEqual(sipho["approved_requests"], 1)
        self.assertEqual(sipho["pending_requests"], 2)
        self.assertEqual(rows[1]["rejected_requests"], 1)

        r = self.client.get(
            self.url("/reports/user-activity"), params={"limit": 1}, headers=auth(self.finance)
        )
        self.assertEqual(len(r.json()["data"]["user_activity"]), 1)

    def test_monthly_trends_current_month(self) -> None:
        now = datetime.now(UTC)
        r = self.client.get(self.url("/reports/monthly-trends"), headers=auth(self.finance))
        data = r.json()["data"]
        self.assertEqual(data["year"], now.year)
        month = data["monthly_trends"][now.month - 1]
        self.assertEqual(month["total_requests"], 4)
        self.assertEqual(month["approved_requests"], 1)
        self.assertEqual(month["approval_rate"], 25.0)
        others = [t for t in data["monthly_trends"] if t["month"] != now.month]
        self.assertTrue(all(t["total_requests"] == 0 for t in others))

    def test_pending_advances_categorized_oldest_first(self) -> None:
        r = self.client.get(self.url("/reports/pending-advances"), headers=auth(self.finance))
        data = r.json()["data"]
        self.assertEqual([a["id"] for a in data["pending_advances"]], [self.a1.id, self.a2.id])
        self.assertEqual(data["summary"]["awaiting_manager_approval"], 1)
        self.assertEqual(data["summary"]["awaiting_finance_approval"], 1)
        self.assertEqual(data["summary"]["total_pending_amount"], 300)
        self.assertEqual([a["id"] for a in data["categorized"]["manager_approved"]], [self.a2.id])

    def test_overdue_returns(self) -> None:
        late = make_advance(
            self.db,
            self.sales,
            status="disbursed",
            amount=250,
            manager=self.manager,
            finance=self.finance,
            expected_return_date=datetime.now(UTC) - timedelta(days=3, hours=1),
        )
        r = self.client.get(self.url("/reports/overdue-returns"), headers=auth(self.finance))
        data = r.json()["data"]
        self.assertEqual([a["id"] for a in data["overdue_advances"]], [late.id])
        self.assertEqual(data["overdue_advances"][0]["days_overdue"], 3)
        self.assertEqual(data["summary"]["total_overdue"], 1)
        self.assertEqual(data["summary"]["total_overdue_amount"], 250)
