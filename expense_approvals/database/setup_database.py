"""
Database Setup Script
Creates all tables and a demo company with users and approval rules
"""

import sys

from expense_approvals.config.database import Base, SessionLocal, engine
from expense_approvals import models  # noqa: F401  registers tables on Base.metadata
from expense_approvals.models.company import Company
from expense_approvals.models.user import User, UserRole
from expense_approvals.models.approval_rule import ApprovalRuleType
from expense_approvals.schemas.approval_rule import ApprovalRuleCreate, ApprovalStepCreate
from expense_approvals.services.rule_catalog import rule_catalog


def create_tables():
    """Create all database tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Database tables created successfully")


def create_demo_company(db) -> dict:
    """Create the demo company and its reporting line"""
    print("\nCreating demo company and users...")

    existing = db.query(Company).filter(Company.name == "Test Company Inc.").first()
    if existing:
        print("✓ Demo company already exists, skipping...")
        return {}

    company = Company(name="Test Company Inc.", currency="USD")
    db.add(company)
    db.flush()

    admin = User(company_id=company.id, name="Admin User", email="admin@testcompany.com", role=UserRole.ADMIN)
    manager = User(company_id=company.id, name="Manager User", email="manager@testcompany.com", role=UserRole.MANAGER)
    employee = User(company_id=company.id, name="Employee User", email="employee@testcompany.com", role=UserRole.EMPLOYEE)
    db.add_all([admin, manager, employee])
    db.flush()

    manager.set_manager(admin)
    employee.set_manager(manager)
    db.commit()

    users = {"admin": admin, "manager": manager, "employee": employee}
    print(f"✓ Created company {company.name} with {len(users)} users")
    for role, user in users.items():
        print(f"  - {role}: {user.email} (id={user.id})")
    return users


def create_demo_rules(db, users: dict):
    """Create one rule per common policy shape"""
    print("\nCreating approval rules...")

    admin = users["admin"]
    manager = users["manager"]

    rules = [
        ApprovalRuleCreate(
            name="Standard Approval (< $500)",
            description="Standard manager approval for expenses under $500",
            rule_type=ApprovalRuleType.SEQUENTIAL,
            max_amount=500,
            require_manager_first=True,
            approval_steps=[ApprovalStepCreate(sequence=1, approver_id=manager.id)],
        ),
        ApprovalRuleCreate(
            name="High Value Approval (>= $500)",
            description="Multi-step approval for high-value expenses",
            rule_type=ApprovalRuleType.SEQUENTIAL,
            min_amount=500,
            require_manager_first=True,
            approval_steps=[
                ApprovalStepCreate(sequence=1, approver_id=manager.id),
                ApprovalStepCreate(sequence=2, approver_id=admin.id),
            ],
        ),
        ApprovalRuleCreate(
            name="Team Approval (60% consensus)",
            description="Requires 60% team approval for mid-range expenses",
            rule_type=ApprovalRuleType.PERCENTAGE,
            percentage_threshold=60,
            min_amount=200,
            max_amount=999,
            approval_steps=[
                ApprovalStepCreate(sequence=1, approver_id=manager.id, is_required=False),
                ApprovalStepCreate(sequence=2, approver_id=admin.id, is_required=False),
            ],
        ),
    ]

    for rule_data in rules:
        rule = rule_catalog.create_rule(db, admin.id, rule_data)
        print(f"✓ Created rule '{rule.name}' ({rule.rule_type.value})")


def main():
    """Main setup function"""
    print("=" * 70)
    print("EXPENSE APPROVAL WORKFLOW - DATABASE SETUP")
    print("=" * 70)

    db = SessionLocal()
    try:
        create_tables()
        users = create_demo_company(db)
        if users:
            create_demo_rules(db, users)
        print("\n✓ Setup complete")
    except Exception as e:
        print(f"\n✗ Database setup failed: {str(e)}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
