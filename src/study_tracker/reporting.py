"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from typing import Any


class SummaryPrinter:
    """Render an analytics report payload in the console."""

    def __init__(self, payload: dict[str, Any]) -> None:
        self.payload = payload

    def print_report(self) -> None:
        daily = self.payload["studyTime"]["daily"]
        if not daily:
            print(f"No study sessions in the last {self.payload['windowDays']} days.")
            return

        total_minutes = sum(day["minutes"] for day in daily)
        total_sessions = sum(day["sessions"] for day in daily)
        streaks = self.payload["performance"]["streaks"]
        insights = self.payload["insights"]

        print(f"Study report for the last {self.payload['windowDays']} days")
        print("-" * 40)
        print(f"Study time:      {format_minutes(total_minutes)}")
        print(f"Sessions:        {total_sessions}")
        print(f"Current streak:  {streaks['current']} day(s)")
        print(f"Longest streak:  {streaks['longest']} day(s)")
        print(f"Avg session:     {insights['averageSessionLength']} min")
        print(f"Best hour:       {insights['bestStudyTime']}")
        print(f"Best day:        {insights['mostProductiveDay']}")
        print()

        print("Recent days:")
        for day in daily[-7:]:
            print(f"  {day['date']:<12} {format_minutes(day['minutes']):>8}  {day['sessions']} session(s)")

        areas = insights["knowledgeAreas"]
        if areas:
            print()
            print("Top topics:")
            for area in areas[:5]:
                print(f"  {area['area'][:30]:<30} {format_minutes(area['timeSpent']):>8}")


def format_minutes(minutes: float) -> str:
    total = int(round(minutes))
    hours, mins = divmod(total, 60)
    return f"{hours:d}h {mins:02d}m"
