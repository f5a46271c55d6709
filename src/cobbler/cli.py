from __future__ import annotations

from datetime import datetime

from .config import AppConfig
from .db import Db
from .domain import Stage
from .errors import NotFoundError, ValidationError
from .migrations import MigrationError, run_sql_file
from .repositories.employee_repo import EmployeeRepository
from .repositories.enquiry_repo import EnquiryRepository
from .repositories.expense_repo import ExpenseRepository
from .services.enquiry_service import EnquiryService
from .services.expense_service import ExpenseService
from .services.report_service import ReportService


def _prompt(msg: str) -> str:
    return input(msg).strip()


def _print_fields(errors: dict[str, str]) -> None:
    for field, msg in errors.items():
        print(f"  - {field}: {msg}")


def run_cli(db: Db, cfg: AppConfig) -> None:
    enquiry_repo = EnquiryRepository()
    expense_repo = ExpenseRepository()

    enquiries = EnquiryService(enquiry_repo=enquiry_repo, rules=cfg.business)
    expenses = ExpenseService(expense_repo=expense_repo, employee_repo=EmployeeRepository())
    reports = ReportService(enquiry_repo=enquiry_repo, expense_repo=expense_repo)

    while True:
        print(f"\n=== {cfg.name} ===")
        print("1) List orders by stage")
        print("2) Show order")
        print("3) Convert enquiry")
        print("4) Dashboard")
        print("5) Expense stats (month)")
        print("6) Run migration file")
        print("0) Exit")

        choice = _prompt("> ")
        try:
            if choice == "0":
                return

            elif choice == "1":
                stage_in = _prompt(f"stage ({'/'.join(s.value for s in Stage)}): ") or Stage.ENQUIRY.value
                with db.session() as conn:
                    rows = enquiries.list(conn, stage=stage_in)
                if not rows:
                    print("(none)")
                for o in rows:
                    print(f"#{o.id} {o.date} {o.customer_name} {o.phone} status={o.status.value} quoted={o.quoted_amount}")

            elif choice == "2":
                enquiry_id = int(_prompt("enquiry id: "))
                with db.session() as conn:
                    o = enquiries.get(conn, enquiry_id)
                print(f"#{o.id} {o.customer_name} ({o.phone}) via {o.inquiry_type.value}")
                print(f"  stage={o.current_stage.value} status={o.status.value}")
                print(f"  products: {', '.join(f'{p.product.value} x{p.quantity}' for p in o.products)}")
                print(f"  quoted={o.quoted_amount} final={o.final_amount} pickup={o.pickup_date} delivery={o.delivery_date}")

            elif choice == "3":
                enquiry_id = int(_prompt("enquiry id: "))
                payload = {
                    "quotedAmount": _prompt("quoted amount: "),
                    "pickupDate": _prompt("pickup date (YYYY-MM-DD): "),
                    "deliveryDate": _prompt("delivery date (YYYY-MM-DD): "),
                }
                with db.transaction() as conn:
                    o = enquiries.transition(conn, enquiry_id, "convert", payload)
                print(f"Enquiry #{o.id} converted, pickup on {o.pickup_date}")

            elif choice == "4":
                with db.session() as conn:
                    stats = reports.dashboard(conn)
                for k, v in stats.items():
                    print(f"{k:>20}: {v}")

            elif choice == "5":
                today = datetime.now().date()
                with db.session() as conn:
                    stats = expenses.stats(conn, month=today.month, year=today.year)
                print(f"Total: {stats['monthlyTotal']}  entries: {stats['filteredEntries']}  avg: {stats['averageExpense']}")
                for row in stats["categoryBreakdown"]:
                    print(f"  {row['category']:<22} {row['totalAmount']:>12} ({row['percentage']}%)")

            elif choice == "6":
                path = _prompt("SQL file: ")
                n = run_sql_file(db, path)
                print(f"Applied {n} statements")

            else:
                print("Unknown choice")

        except ValidationError as e:
            print("Validation error:")
            _print_fields(e.errors)
        except (NotFoundError, MigrationError) as e:
            print(f"Error: {e}")
        except ValueError as e:
            print(f"Invalid input: {e}")
