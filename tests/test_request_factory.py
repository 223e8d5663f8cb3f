"""
Request Factory Tests
Tests for the initial wave of approval requests
"""

from expense_approvals.models.approval_rule import ApprovalRuleType
from expense_approvals.models.approval import ApprovalStatus
from expense_approvals.services.request_factory import request_factory


def _opened(db, expense, rule, submitter):
    requests = request_factory.open_initial_requests(db, expense.id, rule, submitter.id)
    db.commit()
    return sorted((request.approver_id, request.step_number) for request in requests)


class TestInitialRequests:
    """Test which requests each policy opens"""

    def test_no_rule_routes_to_manager(self, db, org, make_expense):
        expense = make_expense(50)

        assert _opened(db, expense, None, org["employee"]) == [(org["manager"].id, 1)]

    def test_no_rule_and_no_manager_opens_nothing(self, db, org, make_expense):
        expense = make_expense(50, submitter=org["lone_employee"])

        assert _opened(db, expense, None, org["lone_employee"]) == []

    def test_sequential_opens_only_first_step(self, db, org, make_rule, make_expense):
        rule = make_rule(ApprovalRuleType.SEQUENTIAL, [org["approver_a"], org["approver_b"]])
        expense = make_expense(50)

        assert _opened(db, expense, rule, org["employee"]) == [(org["approver_a"].id, 1)]

    def test_sequential_manager_first(self, db, org, make_rule, make_expense):
        rule = make_rule(
            ApprovalRuleType.SEQUENTIAL,
            [org["approver_a"], org["approver_b"]],
            require_manager_first=True
        )
        expense = make_expense(50)

        assert _opened(db, expense, rule, org["employee"]) == [(org["manager"].id, 0)]

    def test_manager_first_without_manager_starts_at_step_one(self, db, org, make_rule, make_expense):
        rule = make_rule(ApprovalRuleType.SEQUENTIAL, [org["approver_a"]], require_manager_first=True)
        expense = make_expense(50, submitter=org["lone_employee"])

        assert _opened(db, expense, rule, org["lone_employee"]) == [(org["approver_a"].id, 1)]

    def test_percentage_fans_out_to_every_step(self, db, org, make_rule, make_expense):
        rule = make_rule(
            ApprovalRuleType.PERCENTAGE,
            [org["approver_a"], org["approver_b"], org["approver_c"]],
            percentage_threshold=60
        )
        expense = make_expense(50)

        assert _opened(db, expense, rule, org["employee"]) == [
            (org["approver_a"].id, 1),
            (org["approver_b"].id, 2),
            (org["approver_c"].id, 3),
        ]

    def test_hybrid_fans_out_like_percentage(self, db, org, make_rule, make_expense):
        rule = make_rule(
            ApprovalRuleType.HYBRID,
            [org["approver_a"], org["approver_b"]],
            percentage_threshold=100,
            specific_approver_id=org["approver_b"].id
        )
        expense = make_expense(50)

        assert _opened(db, expense, rule, org["employee"]) == [
            (org["approver_a"].id, 1),
            (org["approver_b"].id, 2),
        ]

    def test_specific_approver_only(self, db, org, make_rule, make_expense):
        rule = make_rule(
            ApprovalRuleType.SPECIFIC_APPROVER,
            [org["approver_a"]],
            specific_approver_id=org["approver_c"].id
        )
        expense = make_expense(50)

        assert _opened(db, expense, rule, org["employee"]) == [(org["approver_c"].id, 1)]

    def test_requests_start_pending(self, db, org, make_rule, make_expense):
        rule = make_rule(ApprovalRuleType.PERCENTAGE, [org["approver_a"], org["approver_b"]], percentage_threshold=50)
        expense = make_expense(50)

        requests = request_factory.open_initial_requests(db, expense.id, rule, org["employee"].id)
        db.commit()

        assert all(request.status == ApprovalStatus.PENDING for request in requests)
        assert all(request.created_at is not None for request in requests)
        assert all(request.action_date is None for request in requests)

    def test_hybrid_specific_approver_outside_chain_gets_next_step(self, db, org, make_rule, make_expense):
        rule = make_rule(
            ApprovalRuleType.HYBRID,
            [org["approver_a"], org["approver_b"]],
            percentage_threshold=100,
            specific_approver_id=org["approver_c"].id
        )
        expense = make_expense(50)

        assert _opened(db, expense, rule, org["employee"]) == [
            (org["approver_a"].id, 1),
            (org["approver_b"].id, 2),
            (org["approver_c"].id, 3),
        ]
