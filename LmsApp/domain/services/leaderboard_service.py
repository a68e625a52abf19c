"""Points leaderboard, global or scoped to one course."""

from django.db.models import Count, Sum

from LmsApp.learning.models import Submission


def leaderboard(course_id: int | None = None) -> list[dict]:
    """Rank students by total awarded points.

    Sorted by total points descending, then student id ascending. Ranks are
    positional (1..N); equal totals get consecutive ranks. Only students with
    at least one submission in scope appear.
    """
    qs = Submission.objects.all()
    if course_id is not None:
        qs = qs.for_course(course_id)
    rows = (
        qs.values("student_id", "student__email", "student__display_name",
                  "student__first_name", "student__last_name")
        .annotate(total_points=Sum("points_awarded"), submissions_count=Count("id"))
        .order_by("-total_points", "student_id")
    )
    entries = []
    for rank, row in enumerate(rows, start=1):
        full_name = f"{row['student__first_name']} {row['student__last_name']}".strip()
        entries.append({
            "rank": rank,
            "student_id": row["student_id"],
            "email": row["student__email"],
            "name": row["student__display_name"] or full_name or row["student__email"],
            "total_points": row["total_points"] or 0,
            "submissions_count": row["submissions_count"],
        })
    return entries
