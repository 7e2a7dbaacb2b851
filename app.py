"""
app.py
Streamlit Subscription Admin console (admin-only).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import date

import streamlit as st

import auth
import billing
import db
import services
import utils
from errors import SubscriptionAdminError
from models import CYCLE_MONTHS, REMINDER_STATUSES, REMINDER_TYPES, SUBSCRIPTION_STATUSES, ReminderSettings

st.set_page_config(page_title="Subscription Admin", layout="wide")


def init_once():
    if "initialized" in st.session_state:
        return
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    # Initialize DB + default admin if needed
    db.init_db(auth.hash_password("admin123"))
    st.session_state.initialized = True


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("Logged out.")


def attempt(action, success_message: str | None = None):
    """Run a store call; show typed errors instead of crashing the page."""
    try:
        result = action()
    except SubscriptionAdminError as e:
        st.error(str(e))
        return None
    if success_message:
        st.success(success_message)
    return result


def flash(message: str):
    """Success message that survives the next st.rerun()."""
    st.session_state.flash = message


def show_flash():
    message = st.session_state.pop("flash", None)
    if message:
        st.success(message)


def login_screen():
    st.title("🔐 Admin Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value="admin")
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(username.strip(), password):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default admin:\n\n"
            "- username: **admin**\n"
            "- password: **admin123**\n\n"
            "You will be forced to change it on first login."
        )


def password_form(key: str):
    p1 = st.text_input("New password", type="password", key=f"{key}_p1")
    p2 = st.text_input("Confirm new password", type="password", key=f"{key}_p2")
    if st.button("Update password", type="primary", key=f"{key}_btn"):
        if attempt(lambda: auth.change_password(st.session_state.username, p1, p2) or True, "Password updated."):
            st.rerun()


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")
    st.warning("You must change the default password before using the app.")
    password_form("force")


def select_record(label: str, records, format_func, key: str):
    """Selectbox over records; returns the chosen record or None."""
    options = [None] + list(records)
    return st.selectbox(
        label,
        options=options,
        format_func=lambda r: "(none)" if r is None else format_func(r),
        key=key,
    )


def delete_controls(entity: str, repo, record_id, key: str):
    confirm = st.checkbox("Confirm delete", value=False, key=f"{key}_confirm")
    if st.button("Delete", type="secondary", disabled=not confirm, key=f"{key}_delete"):
        if attempt(lambda: repo.delete(record_id) or True, f"{entity} deleted."):
            st.session_state[f"edit_{key}"] = None
            st.rerun()


def dashboard_page():
    st.header("📊 Dashboard")

    stats = services.dashboard_stats()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total customers", stats["total_customers"])
    c2.metric("Active subscriptions", stats["active_subscriptions"])
    c3.metric("Products", stats["total_products"])
    c4.metric("Pending reminders", stats["pending_reminders"])

    if stats["pending_reminders"]:
        st.warning(
            f"You have {stats['pending_reminders']} pending reminder(s). "
            "Review and send them to keep subscriptions renewing."
        )

    st.divider()

    customers = services.customers.list()
    products = services.products.list()
    left, right = st.columns(2)
    with left:
        st.subheader("Upcoming renewals (next 7 days)")
        upcoming = services.upcoming_renewals(7)
        if upcoming:
            st.dataframe(utils.subscriptions_frame(upcoming, customers, products), use_container_width=True, hide_index=True)
        else:
            st.caption("No upcoming renewals.")
    with right:
        st.subheader("Recent subscriptions")
        recent = services.recent_subscriptions(10)
        if recent:
            st.dataframe(utils.subscriptions_frame(recent, customers, products), use_container_width=True, hide_index=True)
        else:
            st.caption("No recent activity.")


# ---------- Customers ----------

def customer_form(existing=None):
    st.subheader(f"✏️ Edit Customer (ID: {existing.id})" if existing else "➕ Add Customer")

    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Name", value=(existing.name if existing else ""))
        email = st.text_input("Email", value=(existing.email if existing else ""))
        phone = st.text_input("Phone", value=(existing.phone or "" if existing else ""))
    with col2:
        whatsapp = st.text_input("WhatsApp (optional)", value=(existing.whatsapp or "" if existing else ""))
        address = st.text_area("Address (optional)", value=(existing.address or "" if existing else ""))

    errors = utils.validate_customer_inputs(name, email)
    for e in errors:
        st.error(e)

    if st.button("Save", type="primary", disabled=bool(errors), key="customer_save"):
        fields = {"name": name, "email": email, "phone": phone, "whatsapp": whatsapp, "address": address}
        if existing:
            done = attempt(lambda: services.customers.update(existing.id, fields), "Customer updated.")
        else:
            done = attempt(lambda: services.customers.create(fields), "Customer created.")
        if done:
            st.session_state.edit_customer = None
            st.rerun()


def customers_page():
    st.header("👥 Customers")

    customers = services.customers.list()
    with st.sidebar:
        search = st.text_input("Search (name/email/phone)")
    if search.strip():
        needle = search.strip().lower()
        customers = [
            c for c in customers
            if needle in c.name.lower() or needle in c.email.lower() or needle in (c.phone or "").lower()
        ]

    st.dataframe(
        utils.records_to_frame(customers, ["id", "name", "email", "phone", "whatsapp", "address", "created_at"]),
        use_container_width=True,
        hide_index=True,
    )
    st.divider()

    selected = select_record("Customer", customers, lambda c: f"{c.name} ({c.email}) - ID {c.id}", "customer_pick")
    if selected:
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Edit", key="customer_edit"):
                st.session_state.edit_customer = selected.id
                st.rerun()
        with c2:
            delete_controls("Customer", services.customers, selected.id, "customer")

    st.divider()
    if st.session_state.get("edit_customer"):
        existing = attempt(lambda: services.customers.get(st.session_state.edit_customer))
        if existing:
            customer_form(existing)
        if st.button("Cancel edit"):
            st.session_state.edit_customer = None
            st.rerun()
    else:
        customer_form()


# ---------- Categories ----------

def categories_page():
    st.header("🏷️ Categories")

    categories = services.categories.list()
    st.dataframe(
        utils.records_to_frame(categories, ["id", "name", "description", "created_at"]),
        use_container_width=True,
        hide_index=True,
    )
    st.divider()

    selected = select_record("Category", categories, lambda c: f"{c.name} - ID {c.id}", "category_pick")
    if selected:
        delete_controls("Category", services.categories, selected.id, "category")

    st.subheader(f"✏️ Edit Category (ID: {selected.id})" if selected else "➕ Add Category")
    name = st.text_input("Name", value=(selected.name if selected else ""), key="category_name")
    description = st.text_area("Description", value=(selected.description or "" if selected else ""), key="category_desc")
    errors = utils.validate_category_inputs(name)
    for e in errors:
        st.error(e)
    if st.button("Save", type="primary", disabled=bool(errors), key="category_save"):
        fields = {"name": name, "description": description}
        if selected:
            done = attempt(lambda: services.categories.update(selected.id, fields), "Category updated.")
        else:
            done = attempt(lambda: services.categories.create(fields), "Category created.")
        if done:
            st.rerun()


# ---------- Products ----------

def products_page():
    st.header("📦 Products")

    products = services.products.list()
    categories = services.categories.list()
    category_names = {c.id: c.name for c in categories}

    df = utils.records_to_frame(products, ["id", "name", "price", "billing_cycle", "category_id", "description"])
    if not df.empty:
        df["category"] = df["category_id"].map(category_names)
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.divider()

    selected = select_record("Product", products, lambda p: f"{p.name} ({p.price:.2f}/{p.billing_cycle}) - ID {p.id}", "product_pick")
    if selected:
        delete_controls("Product", services.products, selected.id, "product")

    st.subheader(f"✏️ Edit Product (ID: {selected.id})" if selected else "➕ Add Product")
    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Name", value=(selected.name if selected else ""), key="product_name")
        price = st.text_input("Price", value=(str(selected.price) if selected else ""), key="product_price")
        cycles = list(CYCLE_MONTHS)
        billing_cycle = st.selectbox(
            "Billing cycle", cycles, index=(cycles.index(selected.billing_cycle) if selected else 0), key="product_cycle"
        )
    with col2:
        category_ids = [None] + [c.id for c in categories]
        category_id = st.selectbox(
            "Category",
            category_ids,
            index=(category_ids.index(selected.category_id) if selected and selected.category_id in category_ids else 0),
            format_func=lambda cid: "(none)" if cid is None else category_names[cid],
            key="product_category",
        )
        description = st.text_area("Description", value=(selected.description or "" if selected else ""), key="product_desc")

    errors = utils.validate_product_inputs(name, price, billing_cycle)
    for e in errors:
        st.error(e)
    if st.button("Save", type="primary", disabled=bool(errors), key="product_save"):
        fields = {
            "name": name,
            "price": price,
            "billing_cycle": billing_cycle,
            "category_id": category_id,
            "description": description,
        }
        if selected:
            done = attempt(lambda: services.products.update(selected.id, fields), "Product updated.")
        else:
            done = attempt(lambda: services.products.create(fields), "Product created.")
        if done:
            st.rerun()


# ---------- Subscriptions ----------

def subscription_form(customers, products, existing=None):
    st.subheader(f"✏️ Edit Subscription (ID: {existing.id})" if existing else "➕ Add Subscription")
    if not customers or not products:
        st.info("Add at least one customer and one product first.")
        return

    customer_ids = [c.id for c in customers]
    product_by_id = {p.id: p for p in products}
    product_ids = list(product_by_id)

    col1, col2, col3 = st.columns(3)
    with col1:
        customer_id = st.selectbox(
            "Customer",
            customer_ids,
            index=(customer_ids.index(existing.customer_id) if existing else 0),
            format_func=lambda cid: next(c.name for c in customers if c.id == cid),
        )
        product_id = st.selectbox(
            "Product",
            product_ids,
            index=(product_ids.index(existing.product_id) if existing else 0),
            format_func=lambda pid: f"{product_by_id[pid].name} ({product_by_id[pid].price:.2f}/{product_by_id[pid].billing_cycle})",
        )
    with col2:
        start_date = st.date_input("Start date", value=(existing.start_date if existing else date.today()))
        if existing:
            end_date = st.date_input("End date (manual override)", value=existing.end_date)
        else:
            end_date = billing.advance(start_date, product_by_id[product_id].billing_cycle)
            st.info(f"End date (from billing cycle): **{end_date.isoformat()}**")
    with col3:
        statuses = list(SUBSCRIPTION_STATUSES)
        status = st.selectbox("Status", statuses, index=(statuses.index(existing.status) if existing else 0))
        auto_renew = st.checkbox("Auto renew", value=(existing.auto_renew if existing else True))

    errors = utils.validate_subscription_inputs(customer_id, product_id, start_date, end_date, status)
    for e in errors:
        st.error(e)

    if st.button("Save", type="primary", disabled=bool(errors), key="subscription_save"):
        fields = {
            "customer_id": customer_id,
            "product_id": product_id,
            "start_date": start_date,
            "status": status,
            "auto_renew": auto_renew,
        }
        if existing:
            done = attempt(lambda: services.subscriptions.update(existing.id, {**fields, "end_date": end_date}), "Subscription updated.")
        else:
            done = attempt(lambda: services.subscriptions.create(fields), "Subscription created.")
        if done:
            st.session_state.edit_subscription = None
            st.rerun()


def subscriptions_page():
    st.header("🔁 Subscriptions")

    attempt(services.expire_lapsed_subscriptions)

    subscriptions = services.subscriptions.list()
    customers = services.customers.list()
    products = services.products.list()
    labels = utils.subscription_labels(subscriptions, customers, products)

    with st.sidebar:
        status_filter = st.selectbox("Status", ["All"] + list(SUBSCRIPTION_STATUSES))
        sort_end = st.checkbox("Sort by end_date", value=True)
    if status_filter != "All":
        subscriptions = [s for s in subscriptions if s.status == status_filter]
    if sort_end:
        subscriptions = sorted(subscriptions, key=lambda s: (s.end_date, s.id))

    st.dataframe(utils.subscriptions_frame(subscriptions, customers, products), use_container_width=True, hide_index=True)
    st.divider()

    selected = select_record("Subscription", subscriptions, lambda s: f"{labels[s.id]} - ID {s.id}", "subscription_pick")
    if selected:
        c1, c2, c3 = st.columns(3)
        with c1:
            if st.button("Edit", key="subscription_edit"):
                st.session_state.edit_subscription = selected.id
                st.rerun()
        with c2:
            if st.button("Renew", key="subscription_renew"):
                renewed = attempt(lambda: services.renew_subscription(selected.id))
                if renewed:
                    flash(f"Renewed until {renewed.end_date.isoformat()}.")
                    st.rerun()
        with c3:
            delete_controls("Subscription", services.subscriptions, selected.id, "subscription")

    st.divider()
    if st.session_state.get("edit_subscription"):
        existing = attempt(lambda: services.subscriptions.get(st.session_state.edit_subscription))
        if existing:
            subscription_form(customers, products, existing)
        if st.button("Cancel edit"):
            st.session_state.edit_subscription = None
            st.rerun()
    else:
        subscription_form(customers, products)


# ---------- Reminders ----------

def reminder_form(subscriptions, labels, existing=None):
    st.subheader(f"✏️ Edit Reminder (ID: {existing.id})" if existing else "➕ Add Reminder")
    if not subscriptions:
        st.info("No subscriptions yet.")
        return

    sub_ids = [s.id for s in subscriptions]
    col1, col2, col3 = st.columns(3)
    with col1:
        subscription_id = st.selectbox(
            "Subscription",
            sub_ids,
            index=(sub_ids.index(existing.subscription_id) if existing and existing.subscription_id in sub_ids else 0),
            format_func=lambda sid: labels.get(sid, f"ID {sid}"),
        )
    with col2:
        reminder_date = st.date_input("Reminder date", value=(existing.reminder_date if existing else date.today()))
    with col3:
        types = list(REMINDER_TYPES)
        reminder_type = st.selectbox("Type", types, index=(types.index(existing.type) if existing else 0))

    errors = utils.validate_reminder_inputs(subscription_id, reminder_date, reminder_type)
    for e in errors:
        st.error(e)
    if st.button("Save", type="primary", disabled=bool(errors), key="reminder_save"):
        fields = {"subscription_id": subscription_id, "reminder_date": reminder_date, "type": reminder_type}
        if existing:
            done = attempt(lambda: services.reminders.update(existing.id, fields), "Reminder updated.")
        else:
            done = attempt(lambda: services.reminders.create(fields), "Reminder created.")
        if done:
            st.session_state.edit_reminder = None
            st.rerun()


def reminders_page():
    st.header("⏰ Reminders")

    settings = services.load_reminder_settings()
    st.caption(
        f"Lead time: {settings.lead_days} day(s) | Channels: {', '.join(settings.enabled_types) or 'none'}"
    )
    if st.button("Generate due reminders", type="primary"):
        created = attempt(lambda: services.generate_reminders(settings=settings))
        if created is not None:
            st.success(f"{len(created)} new reminder(s) created.")

    reminders = services.reminders.list()
    subscriptions = services.subscriptions.list()
    labels = utils.subscription_labels(subscriptions, services.customers.list(), services.products.list())

    status_filter = st.radio("Show", ["all"] + list(REMINDER_STATUSES), horizontal=True)
    if status_filter != "all":
        reminders = [r for r in reminders if r.status == status_filter]
    st.dataframe(utils.reminders_frame(reminders, labels), use_container_width=True, hide_index=True)

    st.subheader("Due now")
    due = list(services.reminders.list_pending())
    if due:
        st.dataframe(utils.reminders_frame(due, labels), use_container_width=True, hide_index=True)
    else:
        st.caption("Nothing due.")

    st.divider()
    selected = select_record(
        "Reminder",
        reminders,
        lambda r: f"{r.reminder_date.isoformat()} {r.type} - {labels.get(r.subscription_id, '?')} ({r.status})",
        "reminder_pick",
    )
    if selected:
        c1, c2, c3, c4 = st.columns(4)
        pending = selected.status == "pending"
        with c1:
            if st.button("Mark as sent", disabled=not pending):
                if attempt(lambda: services.reminders.mark_sent(selected.id), "Reminder marked as sent."):
                    st.rerun()
        with c2:
            if st.button("Mark as failed", disabled=not pending):
                if attempt(lambda: services.reminders.mark_failed(selected.id), "Reminder marked as failed."):
                    st.rerun()
        with c3:
            if st.button("Edit", disabled=not pending, key="reminder_edit"):
                st.session_state.edit_reminder = selected.id
                st.rerun()
        with c4:
            delete_controls("Reminder", services.reminders, selected.id, "reminder")

    st.divider()
    if st.session_state.get("edit_reminder"):
        existing = attempt(lambda: services.reminders.get(st.session_state.edit_reminder))
        if existing:
            reminder_form(subscriptions, labels, existing)
        if st.button("Cancel edit"):
            st.session_state.edit_reminder = None
            st.rerun()
    else:
        reminder_form(subscriptions, labels)


# ---------- Reports ----------

def download(label: str, records, file_name: str):
    if records:
        st.download_button(label, data=utils.records_to_csv_bytes(records), file_name=file_name, mime="text/csv")
    else:
        st.caption(f"No data for {file_name}.")


def reports_page():
    st.header("🧾 Reports")

    st.subheader("Export to CSV")
    download("Download customers.csv", services.customers.list(), "customers.csv")
    download("Download products.csv", services.products.list(), "products.csv")
    download("Download subscriptions.csv", services.subscriptions.list(), "subscriptions.csv")
    download("Download reminders.csv", services.reminders.list(), "reminders.csv")

    st.divider()

    st.subheader("Active subscriptions by billing cycle")
    df = utils.recurring_revenue_by_cycle(services.subscriptions.list(), services.products.list())
    st.dataframe(df, use_container_width=True, hide_index=True)


# ---------- Settings ----------

def settings_page():
    st.header("⚙️ Settings")

    st.subheader("Change password")
    password_form("settings")

    st.divider()

    st.subheader("Reminders")
    current = services.load_reminder_settings()
    lead_days = st.number_input("Lead time (days before end date)", min_value=0, max_value=365, value=current.lead_days, step=1)
    email_enabled = st.checkbox("Email reminders", value=current.email_enabled)
    whatsapp_enabled = st.checkbox("WhatsApp reminders", value=current.whatsapp_enabled)
    if st.button("Save reminder settings"):
        new = ReminderSettings(lead_days=int(lead_days), email_enabled=email_enabled, whatsapp_enabled=whatsapp_enabled)
        attempt(lambda: services.save_reminder_settings(new), "Reminder settings saved.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert sample categories, products, customers and subscriptions (works once on an empty store).")
    if st.button("Insert sample data"):
        if attempt(lambda: services.insert_sample_data() or True, "Sample data inserted."):
            st.rerun()


PAGES = {
    "Dashboard": dashboard_page,
    "Customers": customers_page,
    "Categories": categories_page,
    "Products": products_page,
    "Subscriptions": subscriptions_page,
    "Reminders": reminders_page,
    "Reports": reports_page,
    "Settings": settings_page,
}


def main_app():
    st.sidebar.title("📇 Subscription Admin")
    st.sidebar.caption(f"Logged in as: {st.session_state.username}")

    pages = list(PAGES)
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    show_flash()
    try:
        PAGES[st.session_state.page]()
    except SubscriptionAdminError as e:
        st.error(str(e))


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
