"""
Streamlit Frontend for Trip Ledger

The screens travellers use to record shared expenses and settle up.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Balances are always recomputed from the stored expenses
3. Data-entry problems are shown, never silently corrected
4. No hidden actions

Run with: streamlit run app/main.py
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from trip_ledger.config import get_settings
from trip_ledger.models.ledger import BudgetItem, CurrencyKind, Expense, Trip
from trip_ledger.orchestrator import (
    InvalidExchangeRateError,
    SettlementFlow,
    TripEditFlow,
    create_app_components,
)
from trip_ledger.services.storage import StorageError
from trip_ledger.validation import LedgerValidator


st.set_page_config(
    page_title="Trip Ledger",
    page_icon="🧳",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def currency_label(trip: Trip, currency: CurrencyKind) -> str:
    return trip.base_currency if currency == CurrencyKind.BASE else trip.foreign_currency


def main():
    """Main application entry point."""
    edit_flow, settlement_flow, storage = get_components()

    st.sidebar.title("🧳 Trip Ledger")
    st.sidebar.markdown("---")

    trips = run_async(storage.list_trips())
    trip = select_trip(edit_flow, trips)
    if trip is None:
        st.info("Create a trip in the sidebar to get started.")
        return

    page = st.sidebar.radio(
        "Navigate to:",
        ["👥 Members", "🧾 Expenses", "🤝 Settle Up", "💰 Budget"],
        index=2,
    )

    if page == "👥 Members":
        render_members_page(edit_flow, trip)
    elif page == "🧾 Expenses":
        render_expenses_page(edit_flow, trip)
    elif page == "🤝 Settle Up":
        render_settle_page(edit_flow, settlement_flow, trip)
    elif page == "💰 Budget":
        render_budget_page(edit_flow, settlement_flow, trip)


def select_trip(edit_flow: TripEditFlow, trips: list[Trip]):
    """Trip picker plus a small form for creating a new trip."""
    with st.sidebar.expander("➕ New trip", expanded=not trips):
        name = st.text_input("Trip name", value=get_settings().app.default_trip_name)
        members = st.text_input("Members (comma separated)", value="")
        if st.button("Create trip") and name.strip():
            names = [n.strip() for n in members.split(",") if n.strip()]
            run_async(edit_flow.create_trip(name=name, member_names=names))
            st.rerun()

    if not trips:
        return None

    labels = {f"{t.name} ({t.id[:6]})": t for t in trips}
    choice = st.sidebar.selectbox("Trip", list(labels))
    return labels[choice]


def render_members_page(edit_flow: TripEditFlow, trip: Trip):
    st.title("👥 Members")

    for member in trip.members:
        col1, col2 = st.columns([4, 1])
        col1.markdown(f"**{member.name}**")
        if col2.button("Remove", key=f"rm-{member.id}"):
            run_async(edit_flow.remove_member(trip.id, member.id))
            st.rerun()

    st.markdown("---")
    name = st.text_input("New member name")
    if st.button("Add member", type="primary") and name.strip():
        run_async(edit_flow.add_member(trip.id, name))
        st.rerun()


def render_expenses_page(edit_flow: TripEditFlow, trip: Trip):
    st.title("🧾 Expenses")

    if not trip.members:
        st.warning("Add members before recording expenses.")
        return

    names = trip.member_names()
    member_ids = list(names)

    with st.form("add-expense", clear_on_submit=True):
        title = st.text_input("What was it?")
        col1, col2 = st.columns(2)
        amount = col1.number_input("Amount", min_value=0.0, step=1.0)
        currency = col2.radio(
            "Currency",
            [CurrencyKind.BASE, CurrencyKind.FOREIGN],
            format_func=lambda c: currency_label(trip, c),
            horizontal=True,
        )
        paid_by = st.selectbox("Paid by", member_ids, format_func=names.get)
        split_with = st.multiselect(
            "Split with",
            member_ids,
            default=member_ids,
            format_func=names.get,
        )
        spent_on = st.date_input("Date", value=date.today())

        if st.form_submit_button("Save expense", type="primary"):
            if not title.strip() or amount <= 0:
                st.error("Please enter a title and an amount greater than zero.")
            else:
                expense = Expense(
                    title=title,
                    amount=Decimal(str(amount)),
                    currency=currency,
                    paid_by=paid_by,
                    split_with=tuple(split_with),
                    expense_date=spent_on,
                )
                run_async(edit_flow.record_expense(trip.id, expense))
                st.rerun()

    st.markdown("---")
    for expense in reversed(trip.expenses_in_order()):
        col1, col2, col3 = st.columns([4, 2, 1])
        payer = names.get(expense.paid_by, "(removed member)")
        col1.markdown(f"**{expense.title}** · paid by {payer}")
        col2.markdown(f"{expense.amount:,} {currency_label(trip, expense.currency)}")
        if col3.button("Delete", key=f"del-{expense.id}"):
            run_async(edit_flow.delete_expense(trip.id, expense.id))
            st.rerun()


def render_settle_page(edit_flow: TripEditFlow, settlement_flow: SettlementFlow, trip: Trip):
    st.title("🤝 Settle Up")

    rate_input = st.text_input(
        f"Exchange rate (1 {trip.foreign_currency} = ? {trip.base_currency})",
        value=str(trip.exchange_rate),
    )
    if rate_input != str(trip.exchange_rate) and st.button("Update rate"):
        try:
            run_async(edit_flow.set_exchange_rate(trip.id, rate_input))
            st.rerun()
        except InvalidExchangeRateError as e:
            st.error(str(e))

    try:
        report = run_async(settlement_flow.settle_up(trip.id))
    except StorageError as e:
        st.error(f"Could not load the trip: {e}")
        return

    if report.validation.issues:
        st.warning(LedgerValidator().get_user_friendly_summary(report.validation))

    if not report.balances:
        return

    st.subheader("Balances")
    st.table([
        {
            "Member": b.member_name,
            "Paid": f"{b.display_paid:,}",
            "Share": f"{b.display_share:,}",
            "Net": f"{b.display_net:+,}",
        }
        for b in report.balances
    ])

    st.subheader("Transfers")
    if not report.transfers:
        st.success("✅ Everyone is settled up.")
    for t in report.transfers:
        st.markdown(f"**{t.from_name}** → **{t.to_name}**: {t.amount:,} {report.base_currency}")

    if not report.is_settled:
        st.error("Some balances could not be settled. Check the issues above.")


def render_budget_page(edit_flow: TripEditFlow, settlement_flow: SettlementFlow, trip: Trip):
    st.title("💰 Budget")

    summary = run_async(settlement_flow.budget_summary(trip.id))
    col1, col2, col3 = st.columns(3)
    col1.metric("Total", f"{summary.total:,.0f} {trip.base_currency}")
    col2.metric("Paid", f"{summary.paid:,.0f}")
    col3.metric("Outstanding", f"{summary.outstanding:,.0f}")

    for item in trip.budget_items:
        col1, col2 = st.columns([5, 1])
        paid = col1.checkbox(
            f"{item.title} · {item.amount:,} {currency_label(trip, item.currency)}",
            value=item.paid,
            key=f"budget-{item.id}",
        )
        if paid != item.paid:
            run_async(edit_flow.set_budget_item_paid(trip.id, item.id, paid))
            st.rerun()
        if col2.button("Remove", key=f"rm-budget-{item.id}"):
            run_async(edit_flow.remove_budget_item(trip.id, item.id))
            st.rerun()

    st.markdown("---")
    with st.form("add-budget-item", clear_on_submit=True):
        title = st.text_input("Item")
        amount = st.number_input("Amount", min_value=0.0, step=1000.0)
        currency = st.radio(
            "Currency",
            [CurrencyKind.BASE, CurrencyKind.FOREIGN],
            format_func=lambda c: currency_label(trip, c),
            horizontal=True,
        )
        if st.form_submit_button("Add") and title.strip() and amount > 0:
            run_async(edit_flow.add_budget_item(
                trip.id,
                BudgetItem(title=title, amount=Decimal(str(amount)), currency=currency),
            ))
            st.rerun()


if __name__ == "__main__":
    main()
