from __future__ import annotations

import streamlit as st
import pandas as pd

from shopledger.services.items import list_items
from shopledger.services.reports import dashboard_stats, last_n_days_revenue, sales_frame
from shopledger.services.sales import list_sales
from shopledger.ui import bootstrap, require_user
from shopledger.utils import fmt_money

settings, conn = bootstrap()
user = require_user(conn)

st.title("🏠 Dashboard")
st.caption(f"Welcome back, {user.name}! Here's your inventory overview.")

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")

items = list_items(conn, user.id)
sales = list_sales(conn, user.id)
stats = dashboard_stats(items, sales)

c1, c2, c3, c4, c5 = st.columns(5)
c1.metric("Total Items", stats.total_items)
c2.metric("Total Sales", stats.total_sales)
c3.metric("Total Revenue", fmt_money(stats.total_revenue, settings.currency))
c4.metric("Retail Sales", stats.retail_sales)
c5.metric("Wholesale Sales", stats.wholesale_sales)

left, right = st.columns([2, 1], gap="large")
with left:
    st.subheader("Revenue trend (last 7 days)")
    trend = last_n_days_revenue(sales, days=7)
    st.line_chart(trend.set_index("date")[["revenue"]])

with right:
    st.subheader("Sales distribution")
    st.bar_chart(pd.DataFrame({"count": [stats.retail_sales, stats.wholesale_sales]}, index=["Retail", "Wholesale"]))

st.divider()
st.subheader("Recent sales")
if sales:
    st.dataframe(sales_frame(sales[:5]), use_container_width=True, hide_index=True)
else:
    st.info("No sales yet. Record one on the 🛒 Sales page, or load demo data in 🧪 Data Management.", icon="ℹ️")

low = [i for i in items if i.quantity <= 0]
if low:
    st.warning(f"{len(low)} item(s) are out of stock: " + ", ".join(i.name for i in low[:10]))
