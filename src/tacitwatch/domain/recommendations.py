"""Follow-up recommendations derived from an analysis."""

from .models import AnalysisResult, ExtractionResult, Recommendation


def build_recommendations(
    analysis: AnalysisResult,
    extraction: ExtractionResult | None = None,
    low_quality_threshold: float = 70.0,
) -> list[Recommendation]:
    recommendations: list[Recommendation] = []
    fields = analysis.extracted_fields

    if analysis.tacit_renewal_detected:
        days = fields.notice_period_days
        if days is not None:
            recommendations.append(
                Recommendation(
                    kind="tacit_renewal_warning",
                    priority="high",
                    message=(
                        f"This contract renews automatically. A notice of {days} "
                        "days is required to terminate it."
                    ),
                    action_required=True,
                )
            )
        else:
            recommendations.append(
                Recommendation(
                    kind="tacit_renewal_check",
                    priority="medium",
                    message="Tacit renewal detected. Check the termination terms manually.",
                    action_required=True,
                )
            )

    if extraction is not None and extraction.confidence < low_quality_threshold:
        recommendations.append(
            Recommendation(
                kind="low_ocr_quality",
                priority="medium",
                message=(
                    f"Low text extraction quality ({extraction.confidence:.0f}%). "
                    "Manual review recommended."
                ),
            )
        )

    if analysis.validation_warnings:
        recommendations.append(
            Recommendation(
                kind="data_inconsistency",
                priority="medium",
                message="Inconsistencies found in the extracted data. Manual validation required.",
                action_required=True,
                details=list(analysis.validation_warnings),
            )
        )

    if analysis.tacit_renewal_detected and fields.has("end_dates"):
        recommendations.append(
            Recommendation(
                kind="schedule_alert",
                priority="low",
                message="Schedule renewal alerts based on the detected end date.",
            )
        )

    return recommendations
