from datetime import datetime

import pytest

from backoffice.models.agent import AgentType
from backoffice.models.order import OrderType
from backoffice.services import report_service


@pytest.fixture
def agent_year(make_agent_order):
    """Agent orders across 2026 plus one from 2025."""
    make_agent_order(quantity=2, order_date=datetime(2026, 3, 5))  # pending, 18.00
    make_agent_order(quantity=1, status="delivered", order_date=datetime(2026, 3, 20))  # 9.00
    make_agent_order(quantity=2, status="cancelled", order_date=datetime(2026, 4, 2))
    make_agent_order(quantity=1, status="draft", order_date=datetime(2026, 5, 9))
    make_agent_order(quantity=1, status="delivered", order_date=datetime(2025, 12, 31))


class TestAgentPerformance:
    def test_monthly_buckets(self, db, agent_year):
        report = report_service.agent_performance(db, 2026)
        assert report["year"] == 2026
        assert len(report["months"]) == 12

        march = report["months"][2]
        assert march["month_name"] == "March"
        assert march["total_orders"] == 2
        assert march["completed_orders"] == 1
        assert march["pending_orders"] == 1
        assert march["total_revenue"] == 27.0
        assert march["avg_order_value"] == 13.5
        assert march["by_type"]["agent"] == {"orders": 2, "revenue": 27.0}
        assert march["by_type"]["bookstore"] == {"orders": 0, "revenue": 0.0}

        april = report["months"][3]
        assert april["cancelled_orders"] == 1
        assert april["total_revenue"] == 0.0

        assert report["months"][0]["total_orders"] == 0

    def test_summary_excludes_non_revenue_orders(self, db, agent_year):
        """Cancelled and draft orders count as orders but bring no revenue."""
        summary = report_service.agent_performance(db, 2026)["summary"]
        assert summary["total_orders"] == 4
        assert summary["completed_orders"] == 1
        assert summary["pending_orders"] == 1
        assert summary["cancelled_orders"] == 1
        assert summary["total_revenue"] == 27.0
        assert summary["avg_order_value"] == 6.75
        assert summary["avg_monthly_revenue"] == 2.25
        assert summary["completion_rate"] == 25.0

    def test_top_agents_and_products(self, db, agent, product, agent_year):
        report = report_service.agent_performance(db, 2026)
        [top] = report["top_agents"]
        assert top["agent_code"] == agent.agent_code
        assert top["total_revenue"] == 27.0
        assert top["completion_rate"] == 50.0
        assert top["revenue_percentage"] == 100.0

        [item] = report["top_products"]
        assert item["product_id"] == product.id
        assert item["total_sold"] == 3
        assert item["order_count"] == 2
        assert item["total_revenue"] == 27.0

    def test_type_filter(self, db, agent_year):
        report = report_service.agent_performance(db, 2026, AgentType.COMPANY)
        assert report["agent_type"] == "company"
        assert report["summary"]["total_orders"] == 0
        assert report["summary"]["completion_rate"] == 0.0
        assert report["top_agents"] == []

    def test_available_years(self, db, agent_year):
        assert report_service.available_years(db) == [2026, 2025]

    def test_csv(self, db, agent_year):
        content = report_service.agent_performance_csv(report_service.agent_performance(db, 2026))
        lines = content.splitlines()
        assert len(lines) == 13
        assert lines[0].startswith("Month,Total Orders,Completed,Pending,Cancelled,Revenue,Avg Order Value")
        assert "Bookstore Revenue" in lines[0]
        assert lines[3] == "March,2,1,1,0,27.00,13.50,2,27.00,0,0.00,0,0.00"


class TestOrderSummary:
    def test_counts_and_revenue(self, db, make_order, agent_year):
        make_order(quantity=1)  # regular, 10.00
        summary = report_service.order_summary(db, order_type=OrderType.REGULAR)
        assert summary["total_orders"] == 1
        assert summary["orders_by_status"] == {"pending": 1}
        assert summary["total_revenue"] == 10.0

        everything = report_service.order_summary(db)
        assert everything["total_orders"] == 6
        assert everything["orders_by_status"]["cancelled"] == 1
        assert everything["total_revenue"] == 46.0

    def test_top_products_by_order_type(self, db, make_order, agent_year):
        make_order(quantity=4)
        [regular] = report_service.top_products(db, order_type=OrderType.REGULAR)
        assert regular["total_sold"] == 4
        assert regular["total_revenue"] == 40.0

    def test_end_date_is_exclusive_for_both_reports(self, db, make_order):
        make_order(quantity=1, status="delivered", order_date=datetime(2026, 6, 30))
        make_order(quantity=2, status="delivered", order_date=datetime(2026, 7, 1))
        window = {"start_date": datetime(2026, 6, 1), "end_date": datetime(2026, 7, 1)}

        summary = report_service.order_summary(db, **window)
        [item] = report_service.top_products(db, **window)
        assert summary["total_orders"] == 1
        assert summary["total_revenue"] == 10.0
        assert item["total_sold"] == 1
        assert item["total_revenue"] == 10.0
