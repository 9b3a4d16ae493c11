"""
Rapport d'analytics d'un flow sur une période.
Les métriques sont pré-agrégées par l'API distante; ce module ne fait que les interpréter:
- note de performance A-F (conversion 40 %, temps de complétion 30 %, abandon 30 %)
- tendance hebdomadaire (bande de tolérance de 5 %)
- problèmes critiques classés (critical avant warning) et recommandations
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from clubify_checkout.utils.validators import parse_model

SEVERITY_RANK = {"critical": 0, "warning": 1}

# (seuil, points): premier seuil atteint
CONVERSION_BUCKETS = ((80, 40), (60, 30), (40, 20), (20, 10))
COMPLETION_TIME_BUCKETS = ((120, 30), (300, 20), (600, 10))
ABANDONMENT_BUCKETS = ((20, 30), (40, 20), (60, 10))
GRADE_THRESHOLDS = ((85, "A"), (70, "B"), (55, "C"), (40, "D"))


class StepMetric(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    abandonment_rate: float = Field(default=0.0, ge=0, le=100)
    conversion_rate: Optional[float] = Field(default=None, ge=0, le=100)


class DeviceMetric(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    sessions: int = Field(default=0, ge=0)
    conversion_rate: float = Field(default=0.0, ge=0, le=100)


class TrafficSource(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    source: Optional[str] = None
    sessions: int = Field(default=0, ge=0)
    conversion_rate: float = Field(default=0.0, ge=0, le=100)


class WeeklyTrend(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    week: Optional[str] = None
    sessions: int = Field(default=0, ge=0)
    conversion_rate: float = Field(default=0.0, ge=0)


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    severity: str
    description: str
    value: float


def percentage_change(old_value: float, new_value: float) -> float:
    if old_value == 0:
        return 100.0 if new_value > 0 else 0.0
    return round((new_value - old_value) / old_value * 100, 2)

def _bucket_points(value: float, buckets, higher_is_better: bool) -> int:
    for threshold, points in buckets:
        if (value >= threshold) if higher_is_better else (value <= threshold):
            return points
    return 0


class FlowAnalyticsData(BaseModel):
    model_config = ConfigDict(frozen=True)

    flow_id: str = Field(min_length=1, max_length=100)
    period: str = Field(min_length=1, max_length=50)
    total_sessions: int = Field(default=0, ge=0)
    completed_sessions: int = Field(default=0, ge=0)
    abandoned_sessions: int = Field(default=0, ge=0)
    conversion_rate: float = Field(default=0.0, ge=0, le=100)
    abandonment_rate: float = Field(default=0.0, ge=0, le=100, validation_alias=AliasChoices("abandonment_rate", "abandoment_rate"))
    average_completion_time: float = Field(default=0.0, ge=0)
    step_metrics: List[StepMetric] = Field(default_factory=list)
    device_breakdown: Dict[str, DeviceMetric] = Field(default_factory=dict)
    traffic_sources: List[TrafficSource] = Field(default_factory=list)
    user_segments: List[Dict[str, Any]] = Field(default_factory=list)
    hourly_distribution: Dict[int, int] = Field(default_factory=dict)
    weekly_trends: List[WeeklyTrend] = Field(default_factory=list)
    ab_test_results: Dict[str, Any] = Field(default_factory=dict)
    error_analysis: Dict[str, Any] = Field(default_factory=dict)
    conversion_funnel: List[Dict[str, Any]] = Field(default_factory=list)
    revenue_generated: Optional[float] = Field(default=None, ge=0)
    average_order_value: Optional[float] = Field(default=None, ge=0)
    top_exit_points: Optional[List[Dict[str, Any]]] = None
    optimization_opportunities: Optional[List[Dict[str, Any]]] = None
    comparison_data: Optional[Dict[str, Any]] = None
    cohort_analysis: Optional[Dict[str, Any]] = None
    heatmap_data: Optional[Dict[str, Any]] = None
    custom_events: Optional[List[Dict[str, Any]]] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    generated_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "FlowAnalyticsData":
        return parse_model(cls, data)

    @property
    def success_rate(self) -> float:
        return self.conversion_rate

    # --- Extrema ---

    @property
    def highest_abandonment_step(self) -> Optional[StepMetric]:
        best = None
        for step in self.step_metrics:
            if step.abandonment_rate > (best.abandonment_rate if best else 0):
                best = step
        return best

    @property
    def lowest_conversion_step(self) -> Optional[StepMetric]:
        worst = None
        lowest = 100.0
        for step in self.step_metrics:
            rate = 100.0 if step.conversion_rate is None else step.conversion_rate
            if rate < lowest:
                lowest = rate
                worst = step
        return worst

    @property
    def most_used_device(self) -> Optional[str]:
        top, top_sessions = None, 0
        for device, metric in self.device_breakdown.items():
            if metric.sessions > top_sessions:
                top, top_sessions = device, metric.sessions
        return top

    @property
    def best_converting_traffic_source(self) -> Optional[TrafficSource]:
        best = None
        for source in self.traffic_sources:
            if source.conversion_rate > (best.conversion_rate if best else 0):
                best = source
        return best

    @property
    def peak_hour(self) -> Optional[int]:
        peak, peak_sessions = None, 0
        for hour, sessions in self.hourly_distribution.items():
            if sessions > peak_sessions:
                peak, peak_sessions = int(hour), sessions
        return peak

    # --- Interprétation ---

    def overall_trend(self) -> str:
        if len(self.weekly_trends) < 2:
            return "insufficient_data"
        previous, current = self.weekly_trends[-2].conversion_rate, self.weekly_trends[-1].conversion_rate
        if current > previous * 1.05:
            return "improving"
        if current < previous * 0.95:
            return "declining"
        return "stable"

    def performance_score(self) -> int:
        return (
            _bucket_points(self.conversion_rate, CONVERSION_BUCKETS, higher_is_better=True)
            + _bucket_points(self.average_completion_time, COMPLETION_TIME_BUCKETS, higher_is_better=False)
            + _bucket_points(self.abandonment_rate, ABANDONMENT_BUCKETS, higher_is_better=False)
        )

    def performance_grade(self) -> str:
        score = self.performance_score()
        for threshold, grade in GRADE_THRESHOLDS:
            if score >= threshold:
                return grade
        return "F"

    def critical_issues(self) -> List[Issue]:
        issues = []
        if self.conversion_rate < 30:
            issues.append(Issue(type="low_conversion", severity="critical", description="Taux de conversion critique", value=self.conversion_rate))
        if self.abandonment_rate > 70:
            issues.append(Issue(type="high_abandonment", severity="critical", description="Taux d'abandon trop élevé", value=self.abandonment_rate))
        if self.average_completion_time > 900:
            issues.append(Issue(type="slow_completion", severity="warning", description="Temps moyen de complétion trop long", value=self.average_completion_time))
        step = self.highest_abandonment_step
        if step is not None and step.abandonment_rate > 50:
            issues.append(Issue(type="problematic_step", severity="warning", description=f"L'étape '{step.name}' a un fort taux d'abandon", value=step.abandonment_rate))
        return sorted(issues, key=lambda i: SEVERITY_RANK.get(i.severity, len(SEVERITY_RANK)))

    def optimization_recommendations(self) -> List[Dict[str, str]]:
        recommendations = []
        for issue in self.critical_issues():
            if issue.type == "low_conversion":
                recommendations.append({"priority": "high", "category": "conversion", "action": "Simplifier le flow et réduire les points de friction", "impact": "Conversion +15-30 % possible"})
            elif issue.type == "high_abandonment":
                recommendations.append({"priority": "high", "category": "abandonment", "action": "Ajouter des indicateurs de progression et réduire les champs obligatoires", "impact": "Abandon -20-40 % possible"})
            elif issue.type == "slow_completion":
                recommendations.append({"priority": "medium", "category": "performance", "action": "Optimiser les transitions et l'autocomplétion des formulaires", "impact": "Temps de complétion -30-50 % possible"})
            elif issue.type == "problematic_step":
                step = self.highest_abandonment_step
                recommendations.append({"priority": "high", "category": "step_optimization", "action": f"Repenser l'étape '{step.name if step else ''}'", "impact": "Amélioration de la conversion globale"})
        mobile = self.device_breakdown.get("mobile")
        if self.most_used_device == "mobile" and mobile is not None and mobile.conversion_rate < self.conversion_rate * 0.8:
            recommendations.append({"priority": "medium", "category": "mobile_optimization", "action": "Optimiser le flow pour les appareils mobiles", "impact": "Amélioration sensible de la conversion mobile"})
        return recommendations

    def calculate_roi(self) -> Optional[Dict[str, Any]]:
        if self.revenue_generated is None or self.average_order_value is None:
            return None
        return {
            "revenue_generated": self.revenue_generated,
            "estimated_revenue": round(self.completed_sessions * self.average_order_value, 2),
            "average_order_value": self.average_order_value,
            "completed_orders": self.completed_sessions,
            "revenue_per_session": round(self.revenue_generated / self.total_sessions, 2) if self.total_sessions > 0 else 0.0,
        }

    def executive_summary(self) -> Dict[str, Any]:
        step = self.highest_abandonment_step
        return {
            "period": self.period,
            "total_sessions": self.total_sessions,
            "conversion_rate": self.conversion_rate,
            "revenue_generated": self.revenue_generated,
            "performance_grade": self.performance_grade(),
            "trend": self.overall_trend(),
            "critical_issues_count": len(self.critical_issues()),
            "recommendations_count": len(self.optimization_recommendations()),
            "best_device": self.most_used_device,
            "peak_hour": self.peak_hour,
            "problematic_step": step.name if step else None,
        }

    def compare_with_previous(self) -> Optional[Dict[str, float]]:
        if self.comparison_data is None:
            return None
        previous = self.comparison_data.get("previous_period") or {}
        return {
            "conversion_rate_change": percentage_change(float(previous.get("conversion_rate") or 0), self.conversion_rate),
            "sessions_change": percentage_change(float(previous.get("total_sessions") or 0), self.total_sessions),
            "revenue_change": percentage_change(float(previous.get("revenue_generated") or 0), self.revenue_generated or 0),
            "completion_time_change": percentage_change(float(previous.get("average_completion_time") or 0), self.average_completion_time),
        }

    @property
    def has_sufficient_data(self) -> bool:
        return self.total_sessions >= 100

    @property
    def data_confidence_level(self) -> str:
        if self.total_sessions >= 1000:
            return "high"
        if self.total_sessions >= 500:
            return "medium"
        if self.total_sessions >= 100:
            return "low"
        return "insufficient"

    def export_for_dashboard(self) -> Dict[str, Any]:
        return {
            "summary": self.executive_summary(),
            "performance": {
                "grade": self.performance_grade(),
                "score": self.performance_score(),
                "score_breakdown": {
                    "conversion": self.conversion_rate,
                    "speed": self.average_completion_time,
                    "abandonment": self.abandonment_rate,
                },
            },
            "trends": {
                "overall": self.overall_trend(),
                "weekly": [w.model_dump() for w in self.weekly_trends],
                "hourly": self.hourly_distribution,
            },
            "issues": [i.model_dump() for i in self.critical_issues()],
            "recommendations": self.optimization_recommendations(),
            "roi": self.calculate_roi(),
            "comparison": self.compare_with_previous(),
            "confidence": self.data_confidence_level,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }
