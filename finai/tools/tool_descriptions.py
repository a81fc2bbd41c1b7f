"""
Tool Description Constants

Short "Use this when..." descriptions with explicit parameters.
"""

import textwrap

ALERT_TYPE_GUIDE = "'info' (general insight), 'warning' (concern or caution), 'success' (positive news or achievement)"

# ============================================================================
# READ_MOCK_TRANSACTIONS - Statement feed
# ============================================================================
READ_MOCK_TRANSACTIONS_DESCRIPTION = textwrap.dedent("""
Use this when the user asks about their card transactions, spending patterns, or specific purchases.
Reads the credit card statement and returns merchants, products and amounts.

Parameters:
- format: "full" (default) for every transaction plus the raw statement,
  "summary" for totals and the category breakdown only
""").strip()

# ============================================================================
# SEARCH_PRODUCT_ALTERNATIVES - Savings research
# ============================================================================
SEARCH_PRODUCT_ALTERNATIVES_DESCRIPTION = textwrap.dedent("""
Use this when the user wants cheaper or better alternatives to something they bought,
or after spotting an expensive purchase in the statement.

Parameters:
- product_name (required): e.g. "Echo Dot 5th Gen"
- original_price (optional): price paid, e.g. "$49.99"
- search_criteria (optional): e.g. "cheaper", "better reviews", "eco-friendly"
- max_price (optional): upper price bound
- category_filter (optional): e.g. "smart speakers", "athletic shoes"

Returns alternatives with prices, a recommendation and the potential saving.
""").strip()

# ============================================================================
# POST_ALERT - Notification sidebar
# ============================================================================
POST_ALERT_DESCRIPTION = textwrap.dedent(f"""
Use this to surface an important insight, warning or achievement in the user's notification sidebar
(unusual spending, a savings opportunity, a budget milestone).

Parameters:
- message (required): one or two sentences
- type: {ALERT_TYPE_GUIDE}. Unknown types become 'info'.

Call read_alerts first to avoid posting duplicates.
""").strip()

# ============================================================================
# READ_ALERTS - Notification history
# ============================================================================
READ_ALERTS_DESCRIPTION = textwrap.dedent("""
Use this to check which alerts were already posted, to avoid duplicates or to reference
earlier notifications in conversation.

Parameters:
- hours (optional): hours to look back, default "24"
- type (optional): 'info', 'warning' or 'success'. Omit for all types.
""").strip()

# ============================================================================
# ANALYZE_SPENDING - Banking history totals
# ============================================================================
ANALYZE_SPENDING_DESCRIPTION = textwrap.dedent("""
Use this when the user asks how much they spend or receive, or how often they spend,
based on their bank account history.

Parameters:
- days (optional): period to analyze, default 30

Returns totals, counts, average daily spend, a velocity label (low/moderate/high) and insights.
""").strip()

# ============================================================================
# ANALYZE_PRODUCTS - AI purchase categorisation
# ============================================================================
ANALYZE_PRODUCTS_DESCRIPTION = textwrap.dedent("""
Use this when the user asks what they have been buying. Fetches bank transactions and
identifies products and services, grouped by category, with purchasing insights.

Parameters:
- days (optional): period to analyze, default 30
- limit (optional): transactions to fetch, default 50
""").strip()

# ============================================================================
# GET_RECURRING_PAYMENTS - Subscriptions
# ============================================================================
GET_RECURRING_PAYMENTS_DESCRIPTION = textwrap.dedent("""
Use this when the user asks about subscriptions, memberships or other recurring charges.
Returns the payments detected in the statement by the background analysis.
detected=false means detection has not finished yet; try again shortly.
updated_at is when the list was last refreshed.
""").strip()
