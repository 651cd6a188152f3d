import io
import unittest
from datetime import date
from unittest.mock import patch

from openpyxl import load_workbook

from services import excel_export
from tests.helpers import API, SurveyApiTestCase


class CurrentReportTests(SurveyApiTestCase):
    def setUp(self):
        super().setUp()
        self.slug = self.create_department("Finance")
        self.create_question(self.slug, "How was your day?")
        self.question_id = self.active_question_id(self.slug)

    def test_single_answer_report(self):
        self.answer(self.question_id, emoji="😍", emojiId=1)

        response = self.client.get(f"{API}/reports", headers=self.admin)

        self.assertEqual(response.status_code, 200)
        [report] = response.json()
        self.assertEqual(report["department"], "Finance")
        self.assertEqual(report["question"], "How was your day?")
        self.assertEqual(report["totalResponses"], 1)
        self.assertEqual(len(report["responses"]), 5)
        buckets = {r["Label"]: r for r in report["responses"]}
        self.assertEqual(buckets["Excellent"]["Count"], 1)
        self.assertEqual(buckets["Excellent"]["Percentage"], 100.0)
        for label in ("Good", "Okay", "Poor", "Terrible"):
            self.assertEqual(buckets[label]["Count"], 0)
            self.assertEqual(buckets[label]["Percentage"], 0)

    def test_report_without_answers_has_zero_percentages(self):
        [report] = self.client.get(f"{API}/reports", headers=self.admin).json()

        self.assertEqual(report["totalResponses"], 0)
        self.assertTrue(all(r["Percentage"] == 0 for r in report["responses"]))

    def test_only_the_active_question_is_reported(self):
        self.answer(self.question_id, emojiId=5)
        self.create_question(self.slug, "And this week?")

        [report] = self.client.get(f"{API}/reports", headers=self.admin).json()

        self.assertEqual(report["question"], "And this week?")
        self.assertEqual(report["totalResponses"], 0)

    def test_departments_without_questions_are_skipped(self):
        self.create_department("Sales")

        reports = self.client.get(f"{API}/reports", headers=self.admin).json()

        self.assertEqual([r["department"] for r in reports], ["Finance"])

    def test_report_routes_are_public(self):
        self.answer(self.question_id, emojiId=1)

        for path in ("/reports", "/reports/history", "/reports/export", "/emoji-stats"):
            response = self.client.get(f"{API}{path}")
            self.assertEqual(response.status_code, 200, path)

        [report] = self.client.get(f"{API}/reports").json()
        self.assertEqual(report["totalResponses"], 1)

    def test_emoji_stats_span_all_questions(self):
        other = self.create_department("Sales")
        self.create_question(other, "Sales question")
        self.answer(self.question_id, emojiId=2)
        self.answer(self.question_id, emojiId=2)
        self.answer(self.active_question_id(other), emoji="😞")
        self.answer(self.active_question_id(other), emoji="😢")

        response = self.client.get(f"{API}/emoji-stats", headers=self.admin)

        stats = {s["EmojiID"]: s for s in response.json()}
        self.assertEqual(stats[2]["TotalCount"], 2)
        self.assertEqual(stats[4]["TotalCount"], 2)
        self.assertEqual(stats[4]["Percentage"], 50.0)
        self.assertEqual(stats[1]["TotalCount"], 0)


class HistoryTests(SurveyApiTestCase):
    def setUp(self):
        super().setUp()
        self.finance = self.create_department("Finance")
        self.sales = self.create_department("Sales")
        self.create_question(self.finance, "January question")
        self.create_question(self.finance, "February question")
        self.create_question(self.sales, "Sales question")
        self.set_created("January question", "2024-01-10 09:00:00")
        self.set_created("February question", "2024-02-15 18:30:00")
        self.set_created("Sales question", "2024-02-20 08:00:00")

    def set_created(self, question_text, created_at):
        with self.engine.begin() as conn:
            conn.exec_driver_sql(
                "UPDATE SurveyQuestions SET CreatedAt = ? WHERE QuestionText = ?", (created_at, question_text)
            )

    def history(self, **params):
        response = self.client.get(f"{API}/reports/history", params=params, headers=self.admin)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_history_lists_every_question_newest_first(self):
        history = self.history()

        self.assertEqual(
            [h["question"] for h in history], ["Sales question", "February question", "January question"]
        )
        self.assertEqual(history[0]["createdAt"], "2024-02-20T08:00:00")
        self.assertEqual(len(history[0]["emojiData"]), 5)

    def test_history_filtered_by_department(self):
        department_id = self.query("SELECT DepartmentID FROM Departments WHERE Name = 'Finance'")[0]["DepartmentID"]

        history = self.history(departmentId=department_id)

        self.assertEqual({h["department"] for h in history}, {"Finance"})
        self.assertEqual(len(history), 2)

    def test_end_date_includes_the_whole_day(self):
        history = self.history(startDate="2024-02-01", endDate="2024-02-15")

        self.assertEqual([h["question"] for h in history], ["February question"])

    def test_history_counts_inactive_question_answers(self):
        january_id = self.query(
            "SELECT QuestionID FROM SurveyQuestions WHERE QuestionText = 'January question'"
        )[0]["QuestionID"]
        self.answer(january_id, emojiId=3)

        [january] = [h for h in self.history() if h["questionId"] == january_id]

        self.assertEqual(january["totalResponses"], 1)
        okay = next(e for e in january["emojiData"] if e["id"] == 3)
        self.assertEqual((okay["emoji"], okay["label"], okay["count"], okay["percentage"]), ("😐", "Okay", 1, 100.0))


class ExportTests(SurveyApiTestCase):
    def setUp(self):
        super().setUp()
        self.slug = self.create_department("Finance Team")
        self.create_question(self.slug, "How was your day?")
        question_id = self.active_question_id(self.slug)
        self.answer(question_id, emojiId=1)
        self.answer(question_id, emoji="😡")
        self.department_id = self.query("SELECT DepartmentID FROM Departments")[0]["DepartmentID"]

    def export(self, **params):
        response = self.client.get(f"{API}/reports/export", params=params, headers=self.admin)
        self.assertEqual(response.status_code, 200, response.text)
        return response

    def test_workbook_has_summary_and_raw_sheets(self):
        response = self.export()

        self.assertTrue(response.headers["content-type"].startswith(excel_export.XLSX_MEDIA_TYPE))
        wb = load_workbook(io.BytesIO(response.content))
        self.assertEqual(wb.sheetnames, ["Summary", "Raw Data"])

        summary = wb["Summary"]
        self.assertEqual(summary["A1"].value, "Department")
        self.assertTrue(summary["A1"].font.bold)
        self.assertEqual(summary["E1"].value, "Excellent (😍)")
        values = [c.value for c in summary[2]]
        self.assertEqual(values[:2], ["Finance Team", "How was your day?"])
        self.assertEqual(values[3], 2)
        self.assertEqual(values[4:], [1, 0, 0, 0, 1])

        raw = wb["Raw Data"]
        self.assertEqual(raw.max_row, 3)
        self.assertEqual(raw.cell(row=1, column=7).value, "Emoji ID")
        self.assertEqual(sorted(raw.cell(row=r, column=5).value for r in (2, 3)), ["Excellent", "Terrible"])

    def test_filename_names_the_department(self):
        with patch.object(excel_export, "date") as fake_date:
            fake_date.today.return_value = date(2024, 5, 1)
            response = self.export(departmentId=self.department_id)

        self.assertIn('filename="Survey_Report_Finance_Team_2024-05-01.xlsx"', response.headers["content-disposition"])

    def test_export_for_unknown_department_is_404(self):
        response = self.client.get(f"{API}/reports/export", params={"departmentId": 999}, headers=self.admin)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Department not found")

    def test_filename_without_department_says_all(self):
        response = self.export()

        self.assertIn("Survey_Report_All_", response.headers["content-disposition"])

    def test_export_of_unanswered_question_keeps_summary_row(self):
        other = self.create_department("Sales")
        self.create_question(other, "Quiet question")
        sales_id = self.query("SELECT DepartmentID FROM Departments WHERE Name = 'Sales'")[0]["DepartmentID"]

        wb = load_workbook(io.BytesIO(self.export(departmentId=sales_id).content))

        self.assertEqual(wb["Summary"].cell(row=2, column=4).value, 0)
        self.assertEqual(wb["Raw Data"].max_row, 1)


class ExportFilenameTests(unittest.TestCase):
    def test_unsafe_characters_are_replaced(self):
        self.assertEqual(
            excel_export.export_filename("R&D / Labs", today=date(2024, 1, 2)),
            "Survey_Report_R_D_Labs_2024-01-02.xlsx",
        )

    def test_blank_name_means_all(self):
        self.assertEqual(excel_export.export_filename("  ", today=date(2024, 1, 2)), "Survey_Report_All_2024-01-02.xlsx")


if __name__ == "__main__":
    unittest.main()
