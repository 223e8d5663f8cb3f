"""
Shared test fixtures
SQLite test database, a demo company and helpers to build rules and expenses
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment variables
os.environ['DATABASE_URL'] = 'sqlite:///./test.db'
os.environ['LOG_LEVEL'] = 'WARNING'

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from expense_approvals.main import app
from expense_approvals.config.database import Base, get_db
from expense_approvals.models.company import Company
from expense_approvals.models.user import User, UserRole
from expense_approvals.models.expense import Expense, ExpenseStatus
from expense_approvals.schemas.approval_rule import ApprovalRuleCreate, ApprovalStepCreate
from expense_approvals.services.rule_catalog import rule_catalog

# Test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
def test_db():
    """Create test database"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    """Session bound to the test database"""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(test_db):
    return TestClient(app)


def _add_user(db, company, name, role, manager=None):
    user = User(
        company_id=company.id,
        name=name,
        email=f"{name.lower().replace(' ', '.')}@{company.name.lower().replace(' ', '')}.com",
        role=role,
        is_active=True
    )
    db.add(user)
    db.flush()
    if manager is not None:
        user.set_manager(manager)
    return user


@pytest.fixture
def org(db):
    """
    Demo company with a reporting line:

        admin <- manager <- employee
        admin <- approver_a, approver_b, approver_c
        lone_employee (no manager)

    plus an outsider working for another company.
    """
    company = Company(name="Acme", currency="USD")
    other_company = Company(name="Globex", currency="EUR")
    db.add_all([company, other_company])
    db.flush()

    admin = _add_user(db, company, "Admin", UserRole.ADMIN)
    manager = _add_user(db, company, "Manager", UserRole.MANAGER, manager=admin)
    employee = _add_user(db, company, "Employee", UserRole.EMPLOYEE, manager=manager)
    approver_a = _add_user(db, company, "Approver A", UserRole.MANAGER, manager=admin)
    approver_b = _add_user(db, company, "Approver B", UserRole.MANAGER, manager=admin)
    approver_c = _add_user(db, company, "Approver C", UserRole.MANAGER, manager=admin)
    lone_employee = _add_user(db, company, "Lone Employee", UserRole.EMPLOYEE)
    outsider = _add_user(db, other_company, "Outsider", UserRole.ADMIN)
    db.commit()

    return {
        "company": company,
        "admin": admin,
        "manager": manager,
        "employee": employee,
        "approver_a": approver_a,
        "approver_b": approver_b,
        "approver_c": approver_c,
        "lone_employee": lone_employee,
        "outsider": outsider,
    }


@pytest.fixture
def make_rule(db, org):
    """Create a rule through the catalog; approvers are given as users"""
    def _make_rule(rule_type, approvers, **kwargs):
        name = kwargs.pop("name", f"{rule_type.value} rule")
        data = ApprovalRuleCreate(
            name=name,
            rule_type=rule_type,
            approval_steps=[
                ApprovalStepCreate(sequence=index, approver_id=user.id)
                for index, user in enumerate(approvers, start=1)
            ],
            **kwargs
        )
        return rule_catalog.create_rule(db, org["admin"].id, data)
    return _make_rule


@pytest.fixture
def make_expense(db, org):
    """Create a DRAFT expense for a submitter (the employee by default)"""
    def _make_expense(amount, submitter=None, title="Client dinner"):
        submitter = submitter or org["employee"]
        expense = Expense(
            company_id=submitter.company_id,
            submitter_id=submitter.id,
            title=title,
            amount=amount,
            status=ExpenseStatus.DRAFT
        )
        db.add(expense)
        db.commit()
        db.refresh(expense)
        return expense
    return _make_expense
