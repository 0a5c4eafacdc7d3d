"""Staff report API."""

from __future__ import annotations

from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.reports.periods import last_full_month, month_period
from modules.reports.serializers import MonthlyReportQuerySerializer
from modules.reports.services import ReportService


class MonthlyReportView(APIView):
    """GET /api/v1/reports/monthly/?year=&month=

    Defaults to the last full month.
    """

    permission_classes = [IsAdminUser]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = ReportService()

    def get(self, request: Request) -> Response:
        query = MonthlyReportQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        if "year" in params:
            period = month_period(params["year"], params["month"])
        else:
            period = last_full_month()

        report = self._service.build_report(period)
        return Response(report.model_dump(mode="json"))
