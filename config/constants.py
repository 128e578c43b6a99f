from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    CASHIER = "cashier"
    CUSTOMER = "customer"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def color(self) -> str:
        return {
            "admin": "red",
            "staff": "blue",
            "cashier": "green",
            "customer": "gray",
        }[self.value]


class SexAtBirth(str, Enum):
    MALE = "male"
    FEMALE = "female"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class LotStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    OCCUPIED = "occupied"

    @property
    def category(self) -> str:
        """Display category shown in lot search"""
        return "Sold" if self in (LotStatus.RESERVED, LotStatus.OCCUPIED) else "Available"


class VaultOption(str, Enum):
    OPTION1 = "option1"
    OPTION2 = "option2"
    OPTION3 = "option3"

    @property
    def description(self) -> str:
        return {
            "option1": "Double-tier: 1 body per tier (Lower & Upper) + up to 4 total bone riders.",
            "option2": "Double-tier: Lower has 1 body vault; Upper has up to 5 bone slots.",
            "option3": "Double-tier: Bones only; up to 3 bones in Lower and 3 bones in Upper.",
        }[self.value]


class ReportType(str, Enum):
    INTAKE = "intake"
    FINANCIAL = "financial"
    INVENTORY = "inventory"
    PAYMENTS = "payments"
    AGING = "aging"
    SOA = "soa"
    CUSTOMERS = "customers"

    @property
    def label(self) -> str:
        return {
            "intake": "Payments",
            "financial": "Financial",
            "inventory": "Inventory",
            "payments": "Payment Transactions",
            "aging": "Aging Report",
            "soa": "Statement of Account",
            "customers": "Customer Demographics",
        }[self.value]


class LoadStatus(str, Enum):
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


ACTION_CHIP_COLORS = {
    "Created": "green",
    "Updated": "amber",
    "Deleted": "red",
    "Logged In": "blue",
    "Logged Out": "purple",
    "Payment": "green",
    "Pay": "green",
    "Search": "blue",
    "Export": "indigo",
}

ACTIVITY_FILTERS = ["all", "admin", "cashier", "staff", "login"]

GARDEN_PREFIX = {
    "Joy Garden": "J",
    "Peace Garden": "P",
    "Hope Garden": "H",
    "Faith Garden": "F",
    "Love Garden": "L",
}

LOT_TYPE_COLORS = {"standard": "#FFD700", "premium": "#2196F3", "deluxe": "#FF8C00"}
DESTINATION_FALLBACK_COLOR = "#00E676"
DIMMED_LOT_FILL = "#CCCCCC80"
DIMMED_LOT_STROKE = "#999999"

MASTER_ADMIN_USERNAME = "admin"
MASTER_ADMIN_EMAIL = "admin@cemetery.com"

# Schedules of these lengths start collapsed on the payments page
COLLAPSED_SCHEDULE_LENGTHS = (24, 36, 48, 60)

IMPORT_EXTENSIONS = (".xlsx", ".xls")

# Page-size storage keys
PAGE_SIZE_KEYS = {
    "accounts": "account_page_size",
    "deceased": "deceased_page_size",
    "lots": "lot_search_page_size",
    "activity": "activity_page_size",
    "ownership": "ownership_page_size",
}

# Remote endpoints, relative to API_BASE_URL
API_ENDPOINTS = {
    # Authentication
    "LOGIN": "login.php",
    "LOGOUT": "logout.php",
    # Users
    "GET_USERS": "get_users.php",
    "CREATE_USER": "create_user.php",
    "UPDATE_USER": "update_user.php",
    "DELETE_USER": "delete_user.php",
    "IMPORT_USERS": "import_users.php",
    # Profile
    "GET_PROFILE": "get_profile.php",
    "UPDATE_PROFILE": "update_profile.php",
    # Ownership / lots
    "GET_OWNERSHIPS": "get_ownerships.php",
    "CREATE_OWNERSHIP": "create_ownership.php",
    "UPDATE_OWNERSHIP": "update_ownership.php",
    "DELETE_OWNERSHIP": "delete_ownership.php",
    "GET_CUSTOMER_USERS": "get_customer_users.php",
    "GET_LOT_VAULT": "get_lot_vault.php",
    "SET_LOT_VAULT_OPTION": "set_lot_vault_option.php",
    "SEARCH_LOTS": "search_lots.php",
    # Mapping
    "MAP_GARDENS": "get_mapping_gardens.php",
    "MAP_SECTORS": "get_mapping_sectors.php",
    "MAP_BLOCKS": "get_mapping_blocks.php",
    "MAP_AVAILABLE_LOTS": "get_mapping_available_lots.php",
    "MAP_SECTORS_POLY": "get_lots.php",
    "MAP_SECTOR_LOTS": "get_lots_by_sector.php",
    "MAP_SECTOR_PATHS": "sector_paths.php",
    "MAP_UI_CONFIG": "ui_config.php",
    "MAP_MARKERS": "map_markers.php",
    # Payments
    "GET_MONTHLY_PAYMENT_STATUS": "get_monthly_payment_status.php",
    "GET_CUSTOMER_PAYMENT_PLAN": "get_customer_payment_plan.php",
    "GET_ALL_PAYMENTS": "get_all_payments.php",
    "CREATE_F2F_PAYMENT": "create_f2f_payment.php",
    "CREATE_MONTHLY_PAYMENT": "create_monthly_payment.php",
    "CHECK_PAYMENT_STATUS": "check_payment_status.php",
    "PROCESS_PENDING_PAYMENTS": "process_pending_payments.php",
    "EMAIL_RECEIPT": "email_receipt.php",
    "SYNC_PAYMONGO": "sync_paymongo_payments.php",
    "AUTO_SYNC_PAYMONGO": "auto_sync_paymongo.php",
    # Reports
    "GET_DASHBOARD_STATS": "get_dashboard_stats.php",
    "GET_REPORTS_V2": "get_reports_v2.php",
    "GET_INTAKE_PAYMENTS": "get_intake_payments.php",
    # Activity logs
    "GET_ACTIVITY_LOGS": "get_activity_logs.php",
    "RECORD_ACTIVITY": "record_activity.php",
    # Deceased records
    "GET_DECEASED_RECORDS": "get_deceased_records.php",
    "CREATE_DECEASED_RECORD": "create_deceased_record.php",
    "UPDATE_DECEASED_RECORD": "update_deceased_record.php",
    "DELETE_DECEASED_RECORD": "delete_deceased_record.php",
    "IMPORT_DECEASED_RECORDS": "import_deceased_records.php",
}

# Report header sets
FINANCIAL_COLUMNS = ["Revenue", "Payments"]
INVENTORY_COLUMNS = [
    "Garden", "Section", "Total Lots", "Available", "Reserved", "Occupied",
    "Sold (Installment)", "Sold (Fully Paid)", "Sold (Total)", "Occupancy Rate",
]
PAYMENTS_COLUMNS = ["PA No.", "Customer", "Lot", "Amount", "Date/Time", "Method", "Status"]
AGING_COLUMNS = [
    "PA No.", "Buyer", "Lot", "Term (mo)", "Monthly", "Paid Mo.", "Unpaid Mo.",
    "Overdue Mo.", "Remaining", "Last Payment", "Interments",
]
SOA_COLUMNS = [
    "PA No.", "Buyer", "Lot", "Total", "Down", "Monthly", "Term", "Start", "End",
    "Status", "Remaining", "Paid Mo.", "Overdue Mo.",
]
INTAKE_COLUMNS = ["Date", "Customer", "Lot", "Amount", "Method", "Status", "Performed By"]
CUSTOMERS_COLUMNS = ["Category", "Count", "Percentage", "Trend", "Growth"]

# Role -> visible report tabs
ROLE_REPORTS = {
    "cashier": ["intake", "aging", "soa"],
    "staff": ["inventory"],
}

# Account form field labels
ACCOUNT_FIELD_LABELS = {
    "first_name": "First Name",
    "last_name": "Last Name",
    "contact_number": "Contact Number",
    "sex_at_birth": "Gender",
    "role": "Role",
}

CUSTOMER_FIELD_LABELS = {
    "street_address": "Street Address",
    "city": "City",
    "province": "Province",
    "postal_code": "Postal Code",
    "emergency_contact_name": "Emergency Contact Name",
    "emergency_contact_phone": "Emergency Contact Phone",
    "emergency_contact_relationship": "Emergency Contact Relationship",
}
