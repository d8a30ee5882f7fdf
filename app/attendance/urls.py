from django.urls import path

from attendance import views

urlpatterns = [
    path("attendance/nfc-check-in", views.nfc_check_in, name="attendance-nfc-check-in"),
    path("attendance/ad-hoc-check-in", views.ad_hoc_check_in, name="attendance-ad-hoc-check-in"),
    path("attendance/check-ins/<int:check_in_id>/approve", views.approve_ad_hoc, name="attendance-approve-ad-hoc"),
    path("attendance/check-ins/<int:check_in_id>/deny", views.deny_ad_hoc, name="attendance-deny-ad-hoc"),
    path("attendance/check-ins/<int:check_in_id>/check-out", views.check_out, name="attendance-check-out"),
    path("attendance/mark-absent", views.mark_absent, name="attendance-mark-absent"),
    path("attendance/pending-ad-hoc", views.pending_ad_hoc, name="attendance-pending-ad-hoc"),
    path("attendance/stats", views.stats, name="attendance-stats"),
    path("attendance/leaderboard", views.leaderboard, name="attendance-leaderboard"),
    path("attendance/trends", views.trends, name="attendance-trends"),
    path("attendance/admin-check-in", views.admin_check_in, name="attendance-admin-check-in"),
    path("attendance/check-ins/<int:check_in_id>/times", views.check_in_times, name="attendance-check-in-times"),
    path("attendance/active-check-in", views.active_check_in, name="attendance-active-check-in"),
    path(
        "attendance/events/<int:event_id>/users/<int:user_id>/check-in",
        views.delete_check_in,
        name="attendance-delete-check-in",
    ),
    path(
        "attendance/events/<int:event_id>/users/<int:user_id>/absent",
        views.mark_user_absent,
        name="attendance-mark-user-absent",
    ),
    path(
        "attendance/events/<int:event_id>/unchecked-athletes",
        views.unchecked_athletes,
        name="attendance-unchecked-athletes",
    ),
]
