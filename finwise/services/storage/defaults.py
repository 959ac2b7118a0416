"""
Default Reference Catalog

Seed data for a fresh ledger: the household categories and payment
methods the app starts with. Used to seed empty catalog sheets and the
in-memory catalog.
"""

from finwise.models.transaction import Category, PaymentMethod, TransactionType


_EXPENSE_CATEGORIES = [
    ("cat_food_dining", "Food and Dining"),
    ("cat_groceries", "Groceries"),
    ("cat_rent", "Rent"),
    ("cat_auto_transport", "Auto & Transportation"),
    ("cat_loan_repayment", "Loan Repayment"),
    ("cat_stocks", "Stocks"),
    ("cat_mutual_funds", "Mutual Funds"),
    ("cat_utilities", "Utilities"),
    ("cat_education", "Education"),
    ("cat_subscriptions", "Subscriptions"),
    ("cat_home_expense", "Home Expense"),
    ("cat_maid", "Maid"),
    ("cat_fitness", "Fitness"),
    ("cat_shopping", "Shopping"),
    ("cat_entertainment", "Entertainment"),
    ("cat_gifts", "Gifts"),
    ("cat_travel", "Travel"),
    ("cat_recurring_deposit", "Recurring Deposit"),
    ("cat_grooming", "Grooming"),
    ("cat_other", "Others"),
]

_INCOME_CATEGORIES = [
    ("inc_salary", "Salary"),
    ("inc_freelance", "Freelance Income"),
    ("inc_bonus", "Bonus"),
    ("inc_investment", "Investment Income"),
    ("inc_cashback", "Cashback"),
    ("inc_other", "Other Income"),
]

DEFAULT_CATEGORIES: tuple[Category, ...] = tuple(
    [Category(id=i, name=n, type=TransactionType.EXPENSE) for i, n in _EXPENSE_CATEGORIES]
    + [Category(id=i, name=n, type=TransactionType.INCOME) for i, n in _INCOME_CATEGORIES]
)

DEFAULT_PAYMENT_METHODS: tuple[PaymentMethod, ...] = (
    PaymentMethod(id="pm_upi_hdfc", name="UPI (HDFC)", type="UPI"),
    PaymentMethod(id="pm_cc_hdfc_7950", name="CC HDFC 7950", type="Credit Card"),
    PaymentMethod(id="pm_cc_hdfc_8502", name="CC HDFC 8502", type="Credit Card"),
    PaymentMethod(id="pm_cc_icici_9007", name="CC ICICI 9007", type="Credit Card"),
    PaymentMethod(id="pm_cc_axis_6152", name="CC AXIS 6152", type="Credit Card"),
    PaymentMethod(id="pm_cc_sbi_0616", name="CC SBI 0616", type="Credit Card"),
    PaymentMethod(id="pm_cc_yes_2106", name="CC YES 2106", type="Credit Card"),
    PaymentMethod(id="pm_cc_tanshu", name="CC Tanshu", type="Credit Card"),
    PaymentMethod(id="pm_cash", name="Cash", type="Cash"),
    PaymentMethod(id="pm_others", name="Others", type="Others"),
)
