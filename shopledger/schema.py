SCHEMA_SQL = r"""
-- Users (email/password accounts)
CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  email TEXT NOT NULL UNIQUE,            -- stored lower-cased
  display_name TEXT NOT NULL DEFAULT '',
  password_hash TEXT NOT NULL,           -- bcrypt
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

-- Product catalog
CREATE TABLE IF NOT EXISTS items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  owner_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  price REAL NOT NULL DEFAULT 0,
  quantity INTEGER NOT NULL DEFAULT 0,
  sku TEXT NOT NULL,                     -- upper-cased
  description TEXT NOT NULL DEFAULT '',
  vendor TEXT NOT NULL DEFAULT '',
  created_at TEXT NOT NULL,
  created_by INTEGER NOT NULL,
  updated_at TEXT NOT NULL,
  updated_by INTEGER NOT NULL,
  UNIQUE (owner_id, sku),
  FOREIGN KEY (owner_id) REFERENCES users(id)
);

-- Sales (retail / wholesale)
CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  owner_id INTEGER NOT NULL,
  sale_type TEXT NOT NULL,               -- retail / wholesale
  total_amount REAL NOT NULL,
  pay_cash INTEGER NOT NULL DEFAULT 0,
  pay_credit INTEGER NOT NULL DEFAULT 0,
  cash_amount REAL NOT NULL DEFAULT 0,
  credit_amount REAL NOT NULL DEFAULT 0,
  purchaser_name TEXT,
  purchaser_contact TEXT,
  notes TEXT,
  user_name TEXT NOT NULL DEFAULT '',
  created_at TEXT NOT NULL,
  transaction_date TEXT NOT NULL,        -- ISO datetime
  FOREIGN KEY (owner_id) REFERENCES users(id)
);

-- Sale line items (item_id is a loose reference: items may be deleted later)
CREATE TABLE IF NOT EXISTS sale_lines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL,
  item_id INTEGER NOT NULL,
  item_name TEXT NOT NULL,
  quantity INTEGER NOT NULL,
  unit_price REAL NOT NULL,
  cash_price REAL NOT NULL,
  credit_price REAL NOT NULL,
  line_total REAL NOT NULL,
  FOREIGN KEY (sale_id) REFERENCES sales(id) ON DELETE CASCADE
);

-- Purchases (stock in)
CREATE TABLE IF NOT EXISTS purchases (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  owner_id INTEGER NOT NULL,
  supplier_name TEXT NOT NULL,
  supplier_contact TEXT NOT NULL DEFAULT '',
  total_amount REAL NOT NULL,
  notes TEXT NOT NULL DEFAULT '',
  purchase_date TEXT NOT NULL,           -- ISO datetime
  created_at TEXT NOT NULL,
  updated_at TEXT,
  deleted INTEGER NOT NULL DEFAULT 0,
  deleted_at TEXT,
  deleted_by INTEGER,
  FOREIGN KEY (owner_id) REFERENCES users(id)
);

CREATE TABLE IF NOT EXISTS purchase_lines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  purchase_id INTEGER NOT NULL,
  item_id INTEGER NOT NULL,
  item_name TEXT NOT NULL,
  sku TEXT NOT NULL DEFAULT '',
  quantity INTEGER NOT NULL,             -- actual units (boxes x 12 for bulk)
  unit_cost REAL NOT NULL,
  total_cost REAL NOT NULL,
  pricing_type TEXT NOT NULL DEFAULT 'unit',   -- unit / bulk
  bulk_price REAL,                       -- entered box price (bulk only)
  boxes INTEGER,                         -- entered box count (bulk only)
  FOREIGN KEY (purchase_id) REFERENCES purchases(id) ON DELETE CASCADE
);

-- Expenses
CREATE TABLE IF NOT EXISTS expenses (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  owner_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  category TEXT NOT NULL,
  amount REAL NOT NULL,
  description TEXT NOT NULL DEFAULT '',
  expense_date TEXT NOT NULL,            -- ISO date
  user_name TEXT NOT NULL DEFAULT '',
  created_at TEXT NOT NULL,
  updated_at TEXT,
  FOREIGN KEY (owner_id) REFERENCES users(id)
);

-- Activity log (append-only)
CREATE TABLE IF NOT EXISTS activity_logs (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  owner_id INTEGER NOT NULL,
  user_name TEXT NOT NULL DEFAULT '',
  action TEXT NOT NULL,
  details TEXT NOT NULL,
  metadata TEXT,                         -- JSON
  ts TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_items_owner ON items(owner_id);
CREATE INDEX IF NOT EXISTS ix_sales_owner_date ON sales(owner_id, transaction_date);
CREATE INDEX IF NOT EXISTS ix_purchases_owner_date ON purchases(owner_id, purchase_date);
CREATE INDEX IF NOT EXISTS ix_expenses_owner_date ON expenses(owner_id, expense_date);
CREATE INDEX IF NOT EXISTS ix_activity_owner_ts ON activity_logs(owner_id, ts);
"""
