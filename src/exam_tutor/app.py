"""Interactive CLI application."""
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from exam_tutor.dashboard import (
    get_learning_progress, get_next_locked_subject, get_phase_insights,
    get_readiness_color, get_readiness_label,
)
from exam_tutor.db import DEFAULT_DB_PATH, init_db
from exam_tutor.ingestion import import_extraction_file, list_ingestion_jobs
from exam_tutor.phase import can_start_phase2, load_phase_statuses, save_phase_result
from exam_tutor.quiz import (
    build_phase1_quiz, build_reading_session, delete_question, generate_mock_exam, get_question_by_id,
    get_total_question_count, load_questions, record_quiz_answer, update_question,
)
from exam_tutor.review import (
    NoQuestionsAvailable, build_review_session, get_due_review_counts, list_wrong_answers,
    remove_wrong_answer,
)
from exam_tutor.seed import get_certifications, get_subjects_by_certification, is_seeded, seed_all
from exam_tutor.study import (
    advance_day, complete_routine_task, compute_daily_quota, create_study_plan,
    ensure_daily_log, get_active_study_plan, get_routine_stage, get_selected_certification,
    get_user_id, is_day_complete, is_mock_day, set_selected_certification,
)

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """The learner asked to leave the running session."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str]) -> int:
    return int(session_prompt(prompt, choices=choices + list(EXIT_WORDS), show_choices=False))


def show_welcome(certification: str):
    console.print(Panel(
        f"[bold]{certification}[/bold]\n[dim]자격증 시험 대비 학습 도구[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("routine", "Today's course routine"),
        ("course", "Start a 60/90-day course"),
        ("phase1", "Subject mastery quiz (Phase 1)"),
        ("mock", "Full mock exam (Phase 2)"),
        ("wrong", "Wrong-answer notes"),
        ("dashboard", "Progress + Phase 2 readiness"),
        ("import", "Import AI-extracted questions"),
        ("jobs", "Ingestion jobs needing review"),
        ("questions", "Edit or delete bank questions"),
        ("cert", "Switch certification"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def run_quiz_session(
    db_path: str, user_id: str, questions: list, title: str, on_correct=None,
) -> tuple[int, int]:
    """Ask each question in turn. Returns (correct, answered).

    ``on_correct`` is called with each correctly answered question.
    """
    if not questions:
        console.print("[yellow]No questions available![/yellow]")
        return 0, 0
    correct = answered = 0
    console.print(f"\n[bold]{title}[/bold] — {len(questions)} questions [dim](q to stop)[/dim]\n")
    for i, q in enumerate(questions, 1):
        console.print(f"[bold]Q{i}.[/bold] [dim]{q.subject}[/dim] {q.question_text}\n")
        for n, option in enumerate(q.options, 1):
            console.print(f"  [cyan]{n})[/cyan] {option}")
        choices = [str(n) for n in range(1, len(q.options) + 1)]
        answer = session_int_prompt("\nYour answer", choices=choices) - 1
        answered += 1
        if record_quiz_answer(db_path, user_id, q.id, answer):
            console.print("[green]Correct![/green]")
            correct += 1
            if on_correct:
                on_correct(q)
        else:
            console.print(f"[red]Incorrect.[/red] Answer: [green]{q.answer_index + 1}) {q.options[q.answer_index]}[/green]")
        if q.explanation:
            console.print(f"[dim]{q.explanation}[/dim]")
        console.print()
    console.print(f"[bold]Score: {correct}/{answered} ({correct/answered*100:.0f}%)[/bold]\n")
    return correct, answered


def cmd_course(db_path: str, user_id: str, certification: str):
    plan = get_active_study_plan(db_path, user_id, certification)
    if plan and not Confirm.ask(
        f"Day {plan.current_day}/{plan.total_days} 코스가 진행 중입니다. 새로 시작할까요?", default=False,
    ):
        return
    course_type = Prompt.ask("Course", choices=["60_day", "90_day"], default="60_day")
    plan = create_study_plan(db_path, user_id, course_type, certification)
    console.print(f"[green]{plan.total_days}일 완성 코스를 시작합니다. Day 1부터 진행하세요.[/green]")


def cmd_routine(db_path: str, user_id: str, certification: str):
    plan = get_active_study_plan(db_path, user_id, certification)
    if not plan:
        console.print("[yellow]진행 중인 코스가 없습니다. 'course'로 코스를 시작하세요.[/yellow]")
        return
    subjects = get_subjects_by_certification(db_path, certification)
    stats = compute_daily_quota(
        get_total_question_count(db_path, certification), plan.total_days, plan.current_day,
    )
    log = ensure_daily_log(db_path, plan.id, plan.current_day, subjects, stats)
    subject = log.target_subjects[0]
    target = "실전 모의고사" if is_mock_day(plan.current_day) else ", ".join(log.target_subjects)
    stage = "마무리 단계" if get_routine_stage(plan) == "final" else "개념 완성"
    console.print(Panel(
        f"Day [bold]{plan.current_day}[/bold] / {plan.total_days}   [cyan]{target}[/cyan]\n"
        f"오늘의 학습량: [bold]{stats.total}[/bold]문항 "
        f"(신규 {stats.new_count} : 복습 {stats.review_count})   페이스: {stage}",
        title="Today's Routine",
    ))

    if stats.new_count > 0 and not log.completed_reading:
        questions = build_reading_session(db_path, stats, subject, certification)
        if not questions:
            console.print(f"[red]{subject} 과목에 학습할 문항이 없습니다.[/red]")
            return
        run_quiz_session(db_path, user_id, questions, f"Day {plan.current_day}: {subject} 개념 학습")
        complete_routine_task(db_path, log.id, "reading", [q.id for q in questions])
        log.completed_reading = True

    if not log.completed_review:
        try:
            review = build_review_session(db_path, user_id, stats, subject, certification)
        except NoQuestionsAvailable:
            console.print("[red]복습할 문항을 가져올 수 없습니다.[/red]")
            return
        title = (
            f"Day {plan.current_day}: 오답 복습 + 핵심 보충 ({len(review.questions)}문항)"
            if review.reinforced else f"Day {plan.current_day}: 오답 복습"
        )
        run_quiz_session(db_path, user_id, review.questions, title)
        complete_routine_task(db_path, log.id, "review", [q.id for q in review.questions])
        log.completed_review = True

    if is_day_complete(log, stats) and Confirm.ask(
        f"Day {plan.current_day} 완료하고 다음 날로 이동할까요?", default=True,
    ):
        plan = advance_day(db_path, plan.id, plan.current_day)
        if plan.status == "completed":
            console.print("[bold green]코스를 모두 마쳤습니다![/bold green]")
        else:
            console.print(f"[green]Day {plan.current_day}로 이동했습니다.[/green]")


def cmd_phase1(db_path: str, user_id: str, certification: str):
    subjects = get_subjects_by_certification(db_path, certification)
    for n, subject in enumerate(subjects, 1):
        console.print(f"  [cyan]{n}[/cyan]) {subject}")
    choice = IntPrompt.ask("Select subject", choices=[str(n) for n in range(1, len(subjects) + 1)])
    subject = subjects[choice - 1]
    questions = build_phase1_quiz(db_path, subject, certification)
    try:
        correct, answered = run_quiz_session(db_path, user_id, questions, f"Phase 1 · {subject}")
    except SessionExitRequested:
        console.print("[dim]Phase 1 quiz stopped; result not recorded.[/dim]")
        return
    if answered:
        status = save_phase_result(db_path, user_id, subject, answered, correct)
        if status.ready:
            console.print(f"[green]{subject}: Phase 2 준비 완료[/green]")


def cmd_mock(db_path: str, user_id: str, certification: str):
    subjects = get_subjects_by_certification(db_path, certification)
    statuses = load_phase_statuses(db_path, user_id)
    if not can_start_phase2(subjects, statuses):
        locked = get_next_locked_subject(subjects, statuses)
        console.print(f"[yellow]Phase 2 is locked. {locked} 정확도를 70% 이상 3회 연속 달성하세요.[/yellow]")
        return
    questions = generate_mock_exam(db_path, certification, subjects)
    run_quiz_session(db_path, user_id, questions, "CBT 모의고사")


def cmd_wrong(db_path: str, user_id: str):
    wrong_answers = list_wrong_answers(db_path, user_id)
    if not wrong_answers:
        console.print("[green]오답 노트가 비어 있습니다.[/green]")
        return
    due = get_due_review_counts(wrong_answers)
    console.print(f"\n복습 시기: 7일 경과 [bold]{due['seven']}[/bold] · 30일 경과 [bold]{due['thirty']}[/bold]")
    table = Table(title="오답 노트")
    table.add_column("Question", justify="right")
    table.add_column("Subject")
    table.add_column("Misses", justify="right")
    table.add_column("Added")
    questions = []
    for wa in wrong_answers:
        question = get_question_by_id(db_path, wa.question_id)
        if question:
            questions.append(question)
            table.add_row(str(wa.question_id), question.subject, str(wa.wrong_count), wa.added_date[:10])
    console.print(table)
    if Confirm.ask("오답 문제를 다시 풀어볼까요?", default=False):
        clear = Confirm.ask("맞힌 문제는 오답 노트에서 지울까요?", default=False)
        run_quiz_session(
            db_path, user_id, questions, "오답 복습",
            on_correct=(lambda q: remove_wrong_answer(db_path, user_id, q.id)) if clear else None,
        )


def cmd_questions(db_path: str, certification: str):
    subjects = get_subjects_by_certification(db_path, certification)
    subject = Prompt.ask("Subject", choices=subjects, show_choices=True)
    questions = load_questions(db_path, subject=subject, certification=certification)
    if not questions:
        console.print("[yellow]No questions for this subject.[/yellow]")
        return
    table = Table(title=f"{subject} 문항 관리")
    table.add_column("ID", justify="right")
    table.add_column("Year", justify="right")
    table.add_column("Question")
    table.add_column("Answer", justify="right")
    table.add_column("Class")
    for q in questions:
        table.add_row(
            str(q.id), str(q.year or ""), q.question_text[:40],
            str(q.answer_index + 1), q.problem_class or "",
        )
    console.print(table)
    action = Prompt.ask("Action", choices=["edit", "delete", "back"], default="back")
    if action == "back":
        return
    by_id = {str(q.id): q for q in questions}
    question = by_id[Prompt.ask("Question ID", choices=list(by_id), show_choices=False)]
    if action == "delete":
        if Confirm.ask(f"Q{question.id}와 풀이 기록을 삭제할까요?", default=False):
            delete_question(db_path, question.id)
            console.print(f"[green]Deleted question {question.id}.[/green]")
        return
    question.question_text = Prompt.ask("Question text", default=question.question_text)
    choices = [str(n) for n in range(1, len(question.options) + 1)]
    question.answer_index = IntPrompt.ask(
        "Correct option", choices=choices, default=question.answer_index + 1,
    ) - 1
    question.explanation = Prompt.ask("Explanation", default=question.explanation)
    update_question(db_path, question)
    console.print(f"[green]Updated question {question.id}.[/green]")


def cmd_dashboard(db_path: str, user_id: str, certification: str):
    subjects = get_subjects_by_certification(db_path, certification)
    progress = get_learning_progress(db_path, user_id, certification, subjects)
    statuses = load_phase_statuses(db_path, user_id)
    plan = get_active_study_plan(db_path, user_id, certification)

    header = f"Day {plan.current_day} of {plan.total_days}" if plan else "No active course"
    console.print(Panel(f"[bold]{header}[/bold]", title=f"{certification} Dashboard", border_style="blue"))
    color = get_readiness_color(progress["accuracy"])
    console.print(
        f"\n  Solved: [bold]{progress['solved_questions']}/{progress['total_questions']}[/bold] "
        f"({progress['completion_rate']}%)  |  Accuracy: [{color}]{progress['accuracy']}%[/{color}]  |  "
        f"Wrong answers: [bold]{progress['total_wrong_answers']}[/bold]\n"
    )

    table = Table(title="Subject Breakdown")
    table.add_column("Subject", style="cyan")
    table.add_column("Accuracy", justify="right")
    table.add_column("Solved", justify="right")
    table.add_column("Status")
    table.add_column("Phase")
    insights = {i["subject"]: i for i in get_phase_insights(subjects, statuses)}
    for s in progress["subject_stats"]:
        sc_color = get_readiness_color(s["accuracy"])
        table.add_row(
            s["subject"],
            f"{s['accuracy']}%",
            f"{s['solved_count']}/{s['total_count']}",
            f"[{sc_color}]{get_readiness_label(s['accuracy'])}[/{sc_color}]",
            "[green]Phase 2 준비 완료[/green]" if insights[s["subject"]]["ready"] else "Phase 1 진행 중",
        )
    console.print(table)

    locked = get_next_locked_subject(subjects, statuses)
    if locked:
        console.print(f"\n  [yellow]{insights[locked]['message']}[/yellow]")
    else:
        console.print("\n  [green]모든 과목에서 Phase 1 목표를 달성했습니다. 'mock'으로 모의고사를 풀어보세요.[/green]")


def cmd_import(db_path: str, certification: str):
    file_path = Prompt.ask("Extraction file (.json/.yaml)")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    subjects = get_subjects_by_certification(db_path, certification)
    subject = Prompt.ask("Subject", choices=subjects, show_choices=True)
    year = IntPrompt.ask("Exam year", default=None)
    result = import_extraction_file(db_path, file_path, certification, subject, year=year)
    color = "green" if result["status"] == "CLASSIFIED" else "yellow"
    console.print(
        f"[{color}]Imported {len(result['question_ids'])} questions from {result['filename']} "
        f"→ job {result['job_id']} {result['status']}[/{color}]"
    )
    if result["flagged_question_numbers"]:
        console.print(f"[yellow]Needs review: {result['flagged_question_numbers']}[/yellow]")


def cmd_jobs(db_path: str):
    jobs = list_ingestion_jobs(db_path, status="NEEDS_REVIEW")
    if not jobs:
        console.print("[green]No ingestion jobs waiting for review.[/green]")
        return
    table = Table(title="Ingestion Jobs — Needs Review")
    table.add_column("Job", justify="right")
    table.add_column("Subject")
    table.add_column("Questions", justify="right")
    table.add_column("Reason")
    table.add_column("Created")
    for job in jobs:
        table.add_row(
            str(job["id"]), job["subject"] or "",
            str((job["request_payload"] or {}).get("questionCount", "")),
            job["failure_reason"] or "", job["created_at"][:16],
        )
    console.print(table)


def cmd_cert(db_path: str) -> str:
    certifications = get_certifications(db_path)
    certification = Prompt.ask("Certification", choices=certifications, default=certifications[0])
    set_selected_certification(db_path, certification)
    return certification


def main():
    logging.basicConfig(
        level=logging.WARNING, format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    user_id = get_user_id(db_path)
    certification = get_selected_certification(db_path)
    show_welcome(certification)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="routine").strip().lower()
        try:
            if choice == "routine":
                cmd_routine(db_path, user_id, certification)
            elif choice == "course":
                cmd_course(db_path, user_id, certification)
            elif choice == "phase1":
                cmd_phase1(db_path, user_id, certification)
            elif choice == "mock":
                cmd_mock(db_path, user_id, certification)
            elif choice == "wrong":
                cmd_wrong(db_path, user_id)
            elif choice == "dashboard":
                cmd_dashboard(db_path, user_id, certification)
            elif choice == "import":
                cmd_import(db_path, certification)
            elif choice == "questions":
                cmd_questions(db_path, certification)
            elif choice == "jobs":
                cmd_jobs(db_path)
            elif choice == "cert":
                certification = cmd_cert(db_path)
                show_welcome(certification)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck on your exam![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("[dim]Session paused. Back to menu.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.debug("Command %s failed", choice, exc_info=True)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
