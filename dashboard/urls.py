from django.urls import path

from .views import (
    CalendarView,
    DayDetailView,
    MapView,
    OverviewView,
    PeopleView,
    RefreshView,
    WebsitesView,
)

urlpatterns = [
    path("dashboard/overview/", OverviewView.as_view(), name="dashboard-overview"),
    path("dashboard/calendar/", CalendarView.as_view(), name="dashboard-calendar"),
    path(
        "dashboard/days/<str:day>/", DayDetailView.as_view(), name="dashboard-day"
    ),
    path("dashboard/map/", MapView.as_view(), name="dashboard-map"),
    path("dashboard/people/", PeopleView.as_view(), name="dashboard-people"),
    path("dashboard/websites/", WebsitesView.as_view(), name="dashboard-websites"),
    path("dashboard/refresh/", RefreshView.as_view(), name="dashboard-refresh"),
]
