"""Builders for transaction-export rows used across tests."""


def make_row(
    type_: str = "Hourly",
    amount: str = "100.00",
    date_: str = "2024-06-15",
    summary: str = "Invoice for hours worked",
    agency: str = "",
    team: str = "",
    account: str = "Acme",
    amount_column: str = "Amount $",
    transaction_id: str = "T-1",
) -> dict[str, str]:
    """Build a row shaped like the platform's transaction export."""
    return {
        "Date": date_,
        "Transaction ID": transaction_id,
        "Transaction Type": type_,
        "Transaction Summary": summary,
        "Agency": agency,
        "Team": team,
        "Account Name": account,
        "Freelancer": "Jane Freelancer",
        amount_column: amount,
    }
