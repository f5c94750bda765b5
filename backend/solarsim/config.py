"""
Solar simulation engine configuration and constants.

Every numeric default used by the engine lives here. Per-run overrides go
through AnalysisAssumptions; no other module keeps its own copy of these values.
"""

from enum import Enum

# Bumped whenever a default below changes, stored on every SimulationRun
ENGINE_CONFIG_VERSION = "2025.2"


class RunType(str, Enum):
    QUICK = "QUICK"        # area-ratio estimate, no consumption data
    SCENARIO = "SCENARIO"  # full sizing + financial analysis


class OptimizationTarget(str, Enum):
    NPV = "npv"
    IRR = "irr"
    SELF_SUFFICIENCY = "self_sufficiency"


class YieldSource(str, Enum):
    IRRADIANCE = "irradiance"  # refined by the irradiance service
    MANUAL = "manual"          # analyst-supplied yield
    DEFAULT = "default"        # regional constant


class SizingMethod(str, Enum):
    LAYOUT = "layout"          # actual panel placement
    AREA_RATIO = "area_ratio"  # coarse utilization estimate


class AreaUnit(str, Enum):
    SQM = "sqm"
    SQFT = "sqft"


class AchievementBand(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    NEEDS_ATTENTION = "needs_attention"


class DeltaBand(str, Enum):
    ALIGNED = "aligned"
    REVIEW = "review"
    DIVERGENT = "divergent"
    UNAVAILABLE = "unavailable"


class SelectionPhase(str, Enum):
    CREATED = "created"
    SELECTED = "selected"


# ── Capacity sizing ──
BASE_UTILIZATION_RATIO = 0.85   # rack spacing / walkways
PANEL_AREA_SQM = 2.0            # footprint of one module
PANEL_DENSITY_PER_SQM = 1.0 / PANEL_AREA_SQM
DEFAULT_PANEL_WATTAGE_W = 660.0
DEFAULT_CONSTRAINT_FACTOR = 0.10
CONSTRAINT_FACTOR_MIN = 0.05
CONSTRAINT_FACTOR_MAX = 0.25
SQFT_PER_SQM = 10.7639

# Polygons with this colour or any of these label fragments are not solar area
EXCLUDED_POLYGON_COLOR = "#f97316"
EXCLUDED_LABEL_KEYWORDS = ("constraint", "contrainte", "hvac", "obstacle")

# ── Production ──
DEFAULT_YIELD_KWH_PER_KWP = 1150.0
BIFACIAL_BOOST = 1.15
ORIENTATION_FACTOR_MIN = 0.6
ORIENTATION_FACTOR_MAX = 1.0

# Share of annual production per calendar month (Jan..Dec), sums to 1.0
MONTHLY_SOLAR_RATIO = (
    0.04, 0.05, 0.08, 0.10, 0.12, 0.13,
    0.13, 0.12, 0.09, 0.07, 0.04, 0.03,
)

DAYS_PER_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)
BATTERY_ROUND_TRIP_EFFICIENCY = 0.90

# ── Tariff ──
DEFAULT_TARIFF_CODE = "M"
HOURS_PER_MONTH = 730.0
DAYS_PER_BILLING_MONTH = 30

# ── Cost & incentives ──
# (minimum kW, $/W, label), checked from the largest bracket down
SOLAR_COST_TIERS = (
    (3000.0, 1.70, "Tier 1 (3 MW+)"),
    (1000.0, 1.85, "Tier 2 (1-3 MW)"),
    (500.0, 2.00, "Tier 3 (500 kW-1 MW)"),
    (100.0, 2.15, "Tier 4 (100-500 kW)"),
    (0.0, 2.30, "Tier 5 (<100 kW)"),
)
BATTERY_ENERGY_COST_PER_KWH = 550.0
BATTERY_POWER_COST_PER_KW = 800.0
UTILITY_INCENTIVE_PER_W = 1.00   # $1,000 per kW installed
UTILITY_INCENTIVE_CAP_RATIO = 0.40
FEDERAL_ITC_RATE = 0.30

# ── Financial ──
# Canonical rate for both quick and full analyses (a 6% literal was drift)
DEFAULT_DISCOUNT_RATE = 0.07
DEFAULT_ANALYSIS_YEARS = 25
NPV_REPORT_HORIZONS = (10, 20, 25)
LCOE_HORIZONS = (25, 30)
EXPORT_CREDIT_RATIO = 1.0  # net metering credits exports at the retail rate

# Battery replacement, used only when enabled on the assumptions
BATTERY_REPLACEMENT_YEARS = (10, 20, 30)
BATTERY_REPLACEMENT_COST_FACTOR = 0.60  # share of the initial battery capex
BATTERY_PRICE_DECLINE_RATE = 0.05       # per year, netted against tariff escalation

IRR_INITIAL_GUESS = 0.10
IRR_TOLERANCE = 1.0          # currency units
IRR_MAX_ITERATIONS = 50
IRR_LOWER_BOUND = 1e-6
IRR_UPPER_BOUND = 0.999

SENSITIVITY_STEPS = (-0.20, -0.10, 0.0, 0.10, 0.20)

# ── Benchmark / reconciliation ──
ACHIEVEMENT_GOOD_PERCENT = 90.0
ACHIEVEMENT_FAIR_PERCENT = 70.0
DELTA_ALIGNED_PERCENT = 5.0
DELTA_REVIEW_PERCENT = 15.0

MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
