from __future__ import annotations

import streamlit as st

from shopledger.auth import current_user

st.set_page_config(page_title="Shop Ledger", page_icon="🧾", layout="wide")

login = st.Page("pages/0_🔐_Login.py", title="Sign in", icon="🔐")

if current_user() is None:
    pages = [login]
else:
    pages = [
        st.Page("home.py", title="Dashboard", icon="🏠", default=True),
        st.Page("pages/1_📦_Items.py", title="Items", icon="📦"),
        st.Page("pages/2_🛒_Sales.py", title="Sales", icon="🛒"),
        st.Page("pages/3_📥_Purchases.py", title="Purchases", icon="📥"),
        st.Page("pages/4_💸_Expenses.py", title="Expenses", icon="💸"),
        st.Page("pages/5_⚖️_Balance_Sheet.py", title="Balance Sheet", icon="⚖️"),
        st.Page("pages/6_📊_Reports.py", title="Reports", icon="📊"),
        st.Page("pages/7_📜_Activity_Log.py", title="Activity Log", icon="📜"),
        st.Page("pages/8_🧪_Data_Management.py", title="Data Management", icon="🧪"),
        st.Page("pages/9_👤_Profile.py", title="Profile", icon="👤"),
    ]

st.navigation(pages).run()
