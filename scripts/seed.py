import sys
from datetime import datetime, timedelta
from pathlib import Path

# --- PATH FIXER ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.append(str(PROJECT_ROOT))

from sqlmodel import Session, select

from reward_engine.db import create_db_and_tables, engine
from reward_engine.mapper import rule_to_record
from reward_engine.models import (
    ConversionRateRecord,
    PaymentMethod,
    RewardCurrencyRecord,
    RewardRuleRecord,
    Transaction,
)
from reward_engine.types import (
    AmountRounding,
    BonusTier,
    CalculationMethod,
    MccCondition,
    PeriodType,
    RewardConfig,
    RewardRule,
    TransactionTypeCondition,
    make_card_type_id,
)

# --- DATASETS ---

FASHION_MCCS = ["5311", "5611", "5621", "5631", "5641", "5651", "5655", "5661", "5691", "5699"]
TRAVEL_MCCS = ["3000", "3001", "3002", "4511", "4722", "7011", "7512"]

CURRENCIES = [
    RewardCurrencyRecord(id="citi-thankyou", code="TY", display_name="Citi ThankYou Points"),
    RewardCurrencyRecord(id="dbs-points", code="DBS", display_name="DBS Points"),
    RewardCurrencyRecord(id="hsbc-points", code="HSBC", display_name="HSBC Reward Points"),
    RewardCurrencyRecord(
        id="krisflyer", code="KF", display_name="KrisFlyer Miles", is_transferrable=False
    ),
    RewardCurrencyRecord(
        id="asia-miles", code="AM", display_name="Asia Miles", is_transferrable=False
    ),
]

# Miles per point
RATES = [
    ConversionRateRecord(source_currency_id="citi-thankyou", target_currency_id="krisflyer", rate=0.4),
    ConversionRateRecord(source_currency_id="citi-thankyou", target_currency_id="asia-miles", rate=0.4),
    ConversionRateRecord(source_currency_id="dbs-points", target_currency_id="krisflyer", rate=2.0),
    ConversionRateRecord(source_currency_id="hsbc-points", target_currency_id="asia-miles", rate=0.4),
    ConversionRateRecord(
        source_currency_id="asia-miles",
        target_currency_id="krisflyer",
        rate=1.0,
        reversible=True,
    ),
]


def get_card_definitions():
    """Cards with their rules. Rules reference the card type, not the card."""

    # 1. Citi Rewards: Fashion and Online share ONE 9,000 bonus pool
    citi_type = make_card_type_id("Citibank", "Rewards Card")
    citi = {
        "card": PaymentMethod(
            id="citi-rewards",
            name="Citi Rewards",
            issuer="Citibank",
            card_type_id=citi_type,
            currency="SGD",
            points_currency="ThankYou Points",
            reward_currency_id="citi-thankyou",
            statement_day=1,
        ),
        "rules": [
            RewardRule(
                id="citi-fashion",
                card_type_id=citi_type,
                name="Fashion & Department Stores",
                description="10X on shoes, bags and clothes",
                priority=20,
                conditions=[MccCondition(operation="include", values=FASHION_MCCS)],
                reward=RewardConfig(
                    base_multiplier=1,
                    bonus_multiplier=9,
                    monthly_cap=9000,
                    points_currency="ThankYou Points",
                ),
            ),
            RewardRule(
                id="citi-online",
                card_type_id=citi_type,
                name="Online Shopping",
                description="10X online, excluding travel",
                priority=10,
                conditions=[
                    TransactionTypeCondition(operation="include", values=["online"]),
                    MccCondition(operation="exclude", values=TRAVEL_MCCS),
                ],
                reward=RewardConfig(
                    base_multiplier=1,
                    bonus_multiplier=9,
                    monthly_cap=9000,
                    points_currency="ThankYou Points",
                ),
            ),
            RewardRule(
                id="citi-base",
                card_type_id=citi_type,
                name="Base",
                reward=RewardConfig(base_multiplier=1, points_currency="ThankYou Points"),
            ),
        ],
    }

    # 2. DBS Woman's World: 5 points per S$5 block online, bonus tiered by monthly spend
    dbs_type = make_card_type_id("DBS", "Woman's World Card")
    dbs = {
        "card": PaymentMethod(
            id="dbs-wwmc",
            name="DBS Woman's World",
            issuer="DBS",
            card_type_id=dbs_type,
            currency="SGD",
            points_currency="DBS Points",
            reward_currency_id="dbs-points",
            statement_day=15,
        ),
        "rules": [
            RewardRule(
                id="dbs-online",
                card_type_id=dbs_type,
                name="Online Spend",
                priority=10,
                conditions=[TransactionTypeCondition(operation="include", values=["online"])],
                reward=RewardConfig(
                    calculation_method=CalculationMethod.TIERED,
                    base_multiplier=1,
                    block_size=5,
                    amount_rounding_strategy=AmountRounding.FLOOR,
                    bonus_tiers=[
                        BonusTier(name="First S$1,000", multiplier=9, max_spend=1000),
                        BonusTier(name="Above S$1,000", multiplier=0, min_spend=1000),
                    ],
                    monthly_spend_period_type=PeriodType.STATEMENT,
                    points_currency="DBS Points",
                ),
            ),
            RewardRule(
                id="dbs-base",
                card_type_id=dbs_type,
                name="Base",
                reward=RewardConfig(base_multiplier=1, block_size=5, points_currency="DBS Points"),
            ),
        ],
    }

    # 3. HSBC Revolution: accelerated only after S$500 spent this month
    hsbc_type = make_card_type_id("HSBC", "Revolution")
    hsbc = {
        "card": PaymentMethod(
            id="hsbc-revolution",
            name="HSBC Revolution",
            issuer="HSBC",
            card_type_id=hsbc_type,
            currency="SGD",
            points_currency="HSBC Points",
            reward_currency_id="hsbc-points",
        ),
        "rules": [
            RewardRule(
                id="hsbc-contactless",
                card_type_id=hsbc_type,
                name="Contactless & Online",
                priority=10,
                conditions=[
                    TransactionTypeCondition(
                        operation="include", values=["contactless", "online"]
                    )
                ],
                reward=RewardConfig(
                    base_multiplier=1,
                    bonus_multiplier=9,
                    monthly_min_spend=500,
                    monthly_cap=9000,
                    cap_group_id="hsbc-bonus",
                    points_currency="HSBC Points",
                ),
            ),
        ],
    }

    # 4. A debit card with no reward currency (never ranked)
    debit = {
        "card": PaymentMethod(
            id="basic-debit",
            name="Basic Debit",
            issuer="Example Bank",
            card_type_id=make_card_type_id("Example Bank", "Debit"),
            currency="SGD",
        ),
        "rules": [],
    }

    return [citi, dbs, hsbc, debit]


def seed():
    print("🌱 Seeding Database with cards, rules, currencies and rates...")
    create_db_and_tables()

    with Session(engine) as session:
        if session.exec(select(PaymentMethod)).first():
            print("⚠️  Database already has cards. Skipping.")
            return

        # 1. Currencies & Conversion Rates
        session.add_all(CURRENCIES)
        session.commit()
        session.add_all(RATES)
        session.commit()
        print(f"✅ {len(CURRENCIES)} currencies and {len(RATES)} conversion rates created.")

        # 2. Cards & Rules
        created = datetime.now()
        for defi in get_card_definitions():
            session.add(defi["card"])
            for i, rule in enumerate(defi["rules"]):
                record = rule_to_record(rule)
                # Spaced timestamps keep creation order stable for equal priorities
                record["created_at"] = created + timedelta(seconds=i)
                session.add(RewardRuleRecord(**record))
            session.commit()
        print("✅ Cards & Rules Created.")

        # 3. Some history this month: Citi has used 8,600 of its shared 9,000 bonus
        today = datetime.now()
        citi_pool = f"citi-rewards:{make_card_type_id('Citibank', 'Rewards Card')}:9000"
        session.add_all([
            Transaction(
                payment_method_id="citi-rewards",
                amount=860.0,
                merchant="Zara",
                mcc="5621",
                points_earned=8600.0 + 860.0,
                bonus_points=8600.0,
                cap_group_key=citi_pool,
                applied_rule_id="citi-fashion",
                date=today.replace(day=1, hour=12),
            ),
            Transaction(
                payment_method_id="hsbc-revolution",
                amount=320.0,
                merchant="NTUC FairPrice",
                mcc="5411",
                points_earned=320.0,
                date=today.replace(day=1, hour=13),
            ),
        ])
        session.commit()
        print("✅ Transaction history created.")


if __name__ == "__main__":
    seed()
