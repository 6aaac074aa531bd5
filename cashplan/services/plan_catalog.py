# cashplan/services/plan_catalog.py
#
# Hand-authored plan templates. Only the bucket choice depends on the input.

from __future__ import annotations

from typing import Any, Dict, List


CRISIS_LIQUIDITY = {
    "title": "Emergency plan: immediate liquidity",
    "description": "Generate cash quickly and extend the company's financial runway.",
    "category": "liquidity_crisis",
    "priority": "critical",
    "effort": "high",
    "timeframe": "2-4 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.25,
        "timeToImplement": 14,
        "riskLevel": "medium",
        "burnRateReductionPct": 0.30,
    },
    "actions": [
        "Speed up collections with 2-5% early payment discounts",
        "Negotiate 60-90 day extensions with key suppliers",
        "Liquidate obsolete or slow-moving inventory",
        "Consider an emergency credit line or factoring",
        "Apply temporary austerity measures",
    ],
    "kpis": [
        "Days of liquidity extended",
        "Positive weekly cash flow",
        "Burn rate reduced by 30%",
    ],
}

EMERGENCY_REVENUE = {
    "title": "Emergency revenue boost",
    "description": "Activate revenue sources right away to improve short-term cash flow.",
    "category": "revenue_emergency",
    "priority": "high",
    "effort": "medium",
    "timeframe": "3-6 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.20,
        "timeToImplement": 21,
        "riskLevel": "medium",
        "revenueIncreasePct": 0.25,
    },
    "actions": [
        "Launch time-limited flash promotions",
        "Start a referral program with immediate incentives",
        "Offer consulting services or premium products",
        "Explore partnerships for quick revenue",
        "Introduce prepayment plans with attractive discounts",
    ],
    "kpis": [
        "Weekly revenue up 25%",
        "Average collection days reduced",
        "New customers acquired per week",
    ],
}

RAPID_COST_CUT = {
    "title": "Smart cost reduction",
    "description": "Cut spending immediately while keeping essential operating capacity.",
    "category": "cost_optimization",
    "priority": "high",
    "effort": "low",
    "timeframe": "1-3 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.15,
        "timeToImplement": 10,
        "riskLevel": "low",
        "costReductionPct": 0.20,
    },
    "actions": [
        "Review and cancel non-essential subscriptions and services",
        "Renegotiate contracts with key suppliers",
        "Move to remote work to reduce office costs",
        "Focus marketing spend on the highest-ROI channels",
        "Defer non-critical investments for 3-6 months",
    ],
    "kpis": [
        "Fixed monthly costs reduced by 20%",
        "Burn rate reduced without hurting revenue",
        "Time to implement measures",
    ],
}

CASH_OPTIMIZATION = {
    "title": "Cash flow optimization",
    "description": "Make working capital more efficient and strengthen the liquidity position.",
    "category": "cash_optimization",
    "priority": "medium",
    "effort": "medium",
    "timeframe": "4-8 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.18,
        "timeToImplement": 30,
        "riskLevel": "low",
    },
    "actions": [
        "Automate collections management",
        "Optimize payment terms: 15 days for customers, 45 days for suppliers",
        "Build a 10% cash reserve for contingencies",
        "Review and optimize inventory levels",
        "Set up preventive credit lines",
    ],
    "kpis": [
        "Average collection days reduced by 25%",
        "Improved inventory turnover",
        "Cash reserves as % of monthly expenses",
    ],
}

REVENUE_GROWTH = {
    "title": "Revenue growth acceleration",
    "description": "Grow revenue sustainably.",
    "category": "revenue_growth",
    "priority": "medium",
    "effort": "medium",
    "timeframe": "6-12 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.22,
        "timeToImplement": 45,
        "riskLevel": "medium",
        "revenueIncreasePct": 0.15,
    },
    "actions": [
        "Expand into newly identified market segments",
        "Launch complementary products",
        "Tune pricing based on elasticity analysis",
        "Run a customer loyalty program",
    ],
    "kpis": [
        "Monthly revenue growth",
        "New customers acquired",
        "Average ticket per customer",
    ],
}

EFFICIENCY = {
    "title": "Operational efficiency improvement",
    "description": "Streamline processes to reduce costs without hurting quality.",
    "category": "efficiency",
    "priority": "medium",
    "effort": "medium",
    "timeframe": "4-10 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.14,
        "timeToImplement": 35,
        "riskLevel": "low",
        "costReductionPct": 0.10,
    },
    "actions": [
        "Automate repetitive manual processes",
        "Apply lean management to operations",
        "Optimize the supply chain",
        "Train the team to raise productivity",
    ],
    "kpis": [
        "Operating cost reduction",
        "Average processing time",
        "Team satisfaction",
    ],
}

GROWTH_INVESTMENT = {
    "title": "Growth investment plan",
    "description": "Invest surplus cash to accelerate growth.",
    "category": "growth_investment",
    "priority": "low",
    "effort": "high",
    "timeframe": "12-24 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.35,
        "timeToImplement": 90,
        "riskLevel": "medium",
    },
    "actions": [
        "Invest in technology to scale operations",
        "Grow the team in key areas",
        "Develop new products or services",
        "Invest in digital marketing and customer acquisition",
    ],
    "kpis": [
        "ROI of investments made",
        "Market share growth",
        "Operational scalability",
    ],
}

MARKET_EXPANSION = {
    "title": "Strategic market expansion",
    "description": "Expand into new geographic markets or segments.",
    "category": "market_expansion",
    "priority": "low",
    "effort": "high",
    "timeframe": "16-32 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.40,
        "timeToImplement": 120,
        "riskLevel": "high",
        "revenueIncreasePct": 0.30,
    },
    "actions": [
        "Research new markets thoroughly",
        "Define a market entry strategy",
        "Build local strategic partnerships",
        "Adapt products for new segments",
    ],
    "kpis": [
        "Penetration in new markets",
        "Revenue from new segments",
        "Return on expansion investment",
    ],
}

OPERATIONAL_EXCELLENCE = {
    "title": "Advanced operational excellence",
    "description": "Optimize every part of operations for maximum efficiency.",
    "category": "operational_excellence",
    "priority": "low",
    "effort": "medium",
    "timeframe": "8-16 weeks",
    "impactEstimate": {
        "cashIncreasePct": 0.18,
        "timeToImplement": 60,
        "riskLevel": "low",
    },
    "actions": [
        "Put a total quality management system in place",
        "Apply Six Sigma to core processes",
        "Build a culture of continuous improvement",
        "Track advanced KPIs on real-time dashboards",
    ],
    "kpis": [
        "Overall operational efficiency",
        "Waste reduction",
        "Stakeholder satisfaction",
    ],
}

BUCKETS: Dict[str, List[Dict[str, Any]]] = {
    "crisis": [CRISIS_LIQUIDITY, EMERGENCY_REVENUE, RAPID_COST_CUT],
    "cautious": [CASH_OPTIMIZATION, REVENUE_GROWTH, EFFICIENCY],
    "growth": [GROWTH_INVESTMENT, MARKET_EXPANSION, OPERATIONAL_EXCELLENCE],
}
