"""Main window and wxPython application wiring."""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

import wx
import wx.adv

from tasktrack_app.tracker.alarms import ALARM_SOUNDS, CUSTOM_ALARM, AlarmLibrary, AlarmUnavailable
from tasktrack_app.tracker.completion import PromptOutcome
from tasktrack_app.tracker.controllers import AppController, ConfigManager
from tasktrack_app.tracker.models import CONFIG_FIELDS, InvalidUserInput, TimerMode
from tasktrack_app.tracker.views.week_chart import render_week_chart

LOGGER = logging.getLogger(__name__)
SECONDARY = "#6AAAF0"
BACKGROUND = "#F6F7FB"
TEXT_MUTED = "#8A8C93"
ERROR = "#E14C4C"
WARNING = "#C98A00"

STATUS_COLOURS = {"muted": TEXT_MUTED, "warning": WARNING, "error": ERROR}


def format_seconds(total_seconds: int) -> str:
    minutes, seconds = divmod(max(0, int(total_seconds)), 60)
    return f"{minutes:02d}:{seconds:02d}"


class WxAlarmPlayer:
    """Play alarm tones through ``wx.adv.Sound``."""

    def __init__(self, library: AlarmLibrary) -> None:
        self.library = library
        self.unlocked = False

    def _load(self, sound_id: str) -> wx.adv.Sound:
        source = self.library.source_for(sound_id)
        if not source.path.exists():
            raise AlarmUnavailable(f"Missing alarm file {source.path}")
        sound = wx.adv.Sound(str(source.path))
        if not sound.IsOk():
            raise AlarmUnavailable(f"Unreadable alarm file {source.path}")
        return sound

    def unlock(self) -> bool:
        try:
            self._load(self.library.selected_id())
        except AlarmUnavailable:
            LOGGER.warning("Alarm audio unavailable")
            return False
        self.unlocked = True
        return True

    def play(self, sound_id: str) -> None:
        sound = self._load(sound_id)
        if not sound.Play(wx.adv.SOUND_ASYNC):
            raise AlarmUnavailable(f"Playback failed for {sound_id}")
        self.unlocked = True


class WxNotifier:
    def __init__(self, parent: wx.Window) -> None:
        self.parent = parent

    def notify(self, title: str, body: str) -> None:
        message = wx.adv.NotificationMessage(title, body, parent=self.parent)
        message.Show(timeout=wx.adv.NotificationMessage.Timeout_Never)


class ConfirmDialog(wx.Dialog):
    """Yes/no dialog whose outcome settles once; closing it means "no"."""

    def __init__(self, parent: wx.Window, message: str, confirm_label: str, cancel_label: str) -> None:
        super().__init__(parent, title="Please confirm")
        self.outcome = PromptOutcome()
        sizer = wx.BoxSizer(wx.VERTICAL)
        text = wx.StaticText(self, label=message)
        text.Wrap(360)
        sizer.Add(text, 0, wx.ALL, 12)
        buttons = wx.BoxSizer(wx.HORIZONTAL)
        confirm = wx.Button(self, label=confirm_label)
        cancel = wx.Button(self, label=cancel_label)
        confirm.Bind(wx.EVT_BUTTON, lambda _evt: self._finish(self.outcome.confirm))
        cancel.Bind(wx.EVT_BUTTON, lambda _evt: self._finish(self.outcome.cancel))
        buttons.Add(confirm, 0, wx.ALL, 4)
        buttons.Add(cancel, 0, wx.ALL, 4)
        sizer.Add(buttons, 0, wx.ALIGN_RIGHT | wx.ALL, 8)
        self.Bind(wx.EVT_CLOSE, lambda _evt: self._finish(self.outcome.dismiss))
        self.SetSizerAndFit(sizer)
        confirm.SetFocus()

    def _finish(self, settle) -> None:
        if settle() and self.IsModal():
            self.EndModal(wx.ID_OK)


class WxConfirmationPrompt:
    def __init__(self, parent: wx.Window) -> None:
        self.parent = parent

    def confirm(self, message: str, confirm_label: str, cancel_label: str) -> bool:
        dialog = ConfirmDialog(self.parent, message, confirm_label, cancel_label)
        try:
            dialog.ShowModal()
            return dialog.outcome.result
        finally:
            dialog.Destroy()


class TimerPanel(wx.Panel):
    def __init__(self, parent: wx.Window, controller: AppController):
        super().__init__(parent)
        self.controller = controller
        sizer = wx.BoxSizer(wx.VERTICAL)

        modes = wx.BoxSizer(wx.HORIZONTAL)
        self.mode_buttons = {}
        for mode in TimerMode:
            btn = wx.ToggleButton(self, label=mode.label)
            btn.Bind(wx.EVT_TOGGLEBUTTON, lambda _evt, m=mode: self.controller.switch_mode(m))
            modes.Add(btn, 1, wx.ALL, 4)
            self.mode_buttons[mode] = btn
        sizer.Add(modes, 0, wx.EXPAND)

        self.display = wx.StaticText(self, label="25:00", style=wx.ALIGN_CENTER_HORIZONTAL)
        self.display.SetFont(wx.Font(48, wx.FONTFAMILY_TELETYPE, wx.FONTSTYLE_NORMAL, wx.FONTWEIGHT_BOLD))
        sizer.Add(self.display, 0, wx.ALIGN_CENTER | wx.ALL, 12)
        self.mode_label = wx.StaticText(self, label="")
        self.round_label = wx.StaticText(self, label="")
        self.task_label = wx.StaticText(self, label="")
        for label in (self.mode_label, self.round_label, self.task_label):
            sizer.Add(label, 0, wx.ALIGN_CENTER | wx.ALL, 2)

        controls = wx.BoxSizer(wx.HORIZONTAL)
        self.start_btn = wx.Button(self, label="Start")
        self.pause_btn = wx.Button(self, label="Pause")
        reset_btn = wx.Button(self, label="Reset")
        self.start_btn.Bind(wx.EVT_BUTTON, lambda _evt: self.controller.start_timer())
        self.pause_btn.Bind(wx.EVT_BUTTON, lambda _evt: self.controller.pause_timer())
        reset_btn.Bind(wx.EVT_BUTTON, lambda _evt: self.controller.reset_timer())
        for btn in (self.start_btn, self.pause_btn, reset_btn):
            btn.SetBackgroundColour(SECONDARY)
            btn.SetForegroundColour("white")
            controls.Add(btn, 1, wx.ALL, 4)
        sizer.Add(controls, 0, wx.EXPAND)

        self.status = wx.StaticText(self, label="")
        sizer.Add(self.status, 0, wx.ALL, 8)
        self.SetSizer(sizer)

    def refresh(self) -> None:
        state = self.controller.timer_state
        self.display.SetLabel(format_seconds(state.remaining_seconds))
        self.mode_label.SetLabel(state.mode.label)
        for mode, btn in self.mode_buttons.items():
            btn.SetValue(mode is state.mode)
        self.start_btn.Enable(not state.is_running)
        self.pause_btn.Enable(state.is_running)
        self.round_label.SetLabel(f"Round {self.controller.current_round()}")
        active = self.controller.active_task()
        self.task_label.SetLabel(f"Active task: {active.title}" if active else "No active task selected")
        self.Layout()

    def show_status(self, message: str, tone: str) -> None:
        self.status.SetLabel(message)
        self.status.SetForegroundColour(STATUS_COLOURS.get(tone, TEXT_MUTED))
        self.Layout()


class TaskDialog(wx.Dialog):
    def __init__(self, parent: wx.Window, title: str, task=None, default_round: int = 1):
        super().__init__(parent, title=title)
        grid = wx.FlexGridSizer(0, 2, 6, 6)
        grid.AddGrowableCol(1)
        self.title_input = wx.TextCtrl(self, value=task.title if task else "")
        self.description_input = wx.TextCtrl(self, value=task.description if task else "", style=wx.TE_MULTILINE)
        self.planned_input = wx.SpinCtrl(self, min=0, max=99, initial=task.planned if task else 1)
        self.round_input = wx.SpinCtrl(self, min=1, max=999, initial=task.assigned_round if task else default_round)
        for label, ctrl in (
            ("Title", self.title_input),
            ("Description", self.description_input),
            ("Planned pomodoros", self.planned_input),
            ("Round", self.round_input),
        ):
            grid.Add(wx.StaticText(self, label=label), 0, wx.ALIGN_CENTER_VERTICAL)
            grid.Add(ctrl, 1, wx.EXPAND)
        sizer = wx.BoxSizer(wx.VERTICAL)
        sizer.Add(grid, 1, wx.EXPAND | wx.ALL, 10)
        sizer.Add(self.CreateButtonSizer(wx.OK | wx.CANCEL), 0, wx.EXPAND | wx.ALL, 6)
        self.SetSizerAndFit(sizer)

    def get_values(self) -> dict:
        return {
            "title": self.title_input.GetValue(),
            "description": self.description_input.GetValue(),
            "planned": self.planned_input.GetValue(),
            "assigned_round": self.round_input.GetValue(),
        }


class TaskPanel(wx.Panel):
    def __init__(self, parent: wx.Window, controller: AppController, on_warning):
        super().__init__(parent)
        self.controller = controller
        self.on_warning = on_warning
        sizer = wx.BoxSizer(wx.VERTICAL)
        self.list = wx.ListCtrl(self, style=wx.LC_REPORT | wx.LC_SINGLE_SEL)
        for idx, (label, width) in enumerate(
            (("Task", 220), ("Round", 60), ("Planned", 70), ("Completed", 80), ("State", 100))
        ):
            self.list.InsertColumn(idx, label, width=width)
        sizer.Add(self.list, 1, wx.EXPAND | wx.ALL, 6)

        actions = wx.BoxSizer(wx.HORIZONTAL)
        for label, handler in (
            ("Add", self.on_add),
            ("Edit", self.on_edit),
            ("Set active", self.on_activate),
            ("Toggle done", self.on_toggle),
            ("Next round", self.on_next_round),
            ("Delete", self.on_delete),
        ):
            btn = wx.Button(self, label=label)
            btn.Bind(wx.EVT_BUTTON, handler)
            actions.Add(btn, 0, wx.ALL, 3)
        sizer.Add(actions, 0, wx.EXPAND)
        self.summary = wx.StaticText(self, label="")
        self.summary.SetForegroundColour(TEXT_MUTED)
        sizer.Add(self.summary, 0, wx.ALL, 6)
        self.SetSizer(sizer)
        self._task_ids: list[str] = []

    def refresh(self) -> None:
        tasks = self.controller.tasks_for_display()
        active = self.controller.active_task()
        self.list.DeleteAllItems()
        self._task_ids = [task.id for task in tasks]
        if not tasks:
            self.summary.SetLabel("No tasks for today yet. Let's plan your focus sessions.")
            return
        for row, task in enumerate(tasks):
            title = f"▶ {task.title}" if active and active.id == task.id else task.title
            self.list.InsertItem(row, title)
            self.list.SetItem(row, 1, str(task.assigned_round))
            self.list.SetItem(row, 2, str(task.planned))
            self.list.SetItem(row, 3, str(task.completed))
            self.list.SetItem(row, 4, "Done" if task.done else "In progress")
        summary = self.controller.today_summary()
        self.summary.SetLabel(
            f"Planned: {summary.planned} • Completed: {summary.completed} • Done: {summary.done}/{summary.tasks}"
        )

    def _selected_id(self) -> Optional[str]:
        index = self.list.GetFirstSelected()
        if index < 0 or index >= len(self._task_ids):
            return None
        return self._task_ids[index]

    def _submit(self, dialog: TaskDialog, editing_id: Optional[str] = None) -> None:
        if dialog.ShowModal() == wx.ID_OK:
            try:
                self.controller.submit_task(editing_id=editing_id, **dialog.get_values())
            except InvalidUserInput as exc:
                self.on_warning(str(exc))
        dialog.Destroy()

    def on_add(self, _event: wx.CommandEvent) -> None:
        self._submit(TaskDialog(self, "Add task", default_round=self.controller.current_round()))

    def on_edit(self, _event: wx.CommandEvent) -> None:
        task_id = self._selected_id()
        task = self.controller.scheduler.get_task(self.controller.today_key(), task_id) if task_id else None
        if task is None:
            self.on_warning("Select a task first.")
            return
        self._submit(TaskDialog(self, "Update task", task=task), editing_id=task.id)

    def _with_selection(self, action) -> None:
        task_id = self._selected_id()
        if task_id is None:
            self.on_warning("Select a task first.")
            return
        action(task_id)

    def on_activate(self, _event: wx.CommandEvent) -> None:
        self._with_selection(self.controller.activate_task)

    def on_toggle(self, _event: wx.CommandEvent) -> None:
        self._with_selection(self.controller.toggle_task)

    def on_next_round(self, _event: wx.CommandEvent) -> None:
        self._with_selection(self.controller.move_task_to_next_round)

    def on_delete(self, _event: wx.CommandEvent) -> None:
        self._with_selection(self.controller.delete_task)


class WeekPanel(wx.Panel):
    def __init__(self, parent: wx.Window, controller: AppController):
        super().__init__(parent)
        self.controller = controller
        sizer = wx.BoxSizer(wx.VERTICAL)
        self.lines = wx.StaticText(self, label="")
        sizer.Add(self.lines, 0, wx.ALL, 8)
        self.chart = wx.StaticBitmap(self)
        sizer.Add(self.chart, 1, wx.EXPAND | wx.ALL, 8)
        self.SetSizer(sizer)

    def refresh(self) -> None:
        week = self.controller.week_summary()
        self.lines.SetLabel(
            "\n".join(f"{day.date}  Planned: {day.planned} • Completed: {day.completed}" for day in week)
        )
        try:
            png = render_week_chart(week)
        except Exception:
            LOGGER.exception("Week chart rendering failed")
            return
        image = wx.Image(wx.InputStream(io.BytesIO(png)), wx.BITMAP_TYPE_PNG)
        self.chart.SetBitmap(wx.Bitmap(image))
        self.Layout()


class TimerSettingsDialog(wx.Dialog):
    LABELS = {
        "focus_minutes": "Focus (minutes)",
        "short_break_minutes": "Short break (minutes)",
        "long_break_minutes": "Long break (minutes)",
        "sessions_before_long_break": "Sessions before long break",
    }

    def __init__(self, parent: wx.Window, controller: AppController):
        super().__init__(parent, title="Timer settings")
        config = controller.timer_config
        grid = wx.FlexGridSizer(0, 2, 6, 6)
        self.inputs = {}
        for attr, (_key, low, high, _default) in CONFIG_FIELDS.items():
            ctrl = wx.TextCtrl(self, value=str(getattr(config, attr)))
            ctrl.SetToolTip(f"{low}–{high}")
            grid.Add(wx.StaticText(self, label=self.LABELS[attr]), 0, wx.ALIGN_CENTER_VERTICAL)
            grid.Add(ctrl, 1, wx.EXPAND)
            self.inputs[attr] = ctrl
        sizer = wx.BoxSizer(wx.VERTICAL)
        sizer.Add(grid, 1, wx.EXPAND | wx.ALL, 10)
        buttons = self.CreateButtonSizer(wx.OK | wx.CANCEL)
        defaults = wx.Button(self, wx.ID_RESET, label="Restore defaults")
        defaults.Bind(wx.EVT_BUTTON, lambda _evt: self.EndModal(wx.ID_RESET))
        sizer.Add(defaults, 0, wx.ALL, 6)
        sizer.Add(buttons, 0, wx.EXPAND | wx.ALL, 6)
        self.SetSizerAndFit(sizer)

    def get_values(self) -> dict:
        return {attr: ctrl.GetValue() for attr, ctrl in self.inputs.items()}


class TasktrackFrame(wx.Frame):
    def __init__(self, controller: AppController, config_manager: ConfigManager):
        cfg = config_manager.config
        super().__init__(None, title="Tasktrack Pomodoro", size=(cfg.last_window_width, cfg.last_window_height))
        self.controller = controller
        self.config_manager = config_manager
        self.SetBackgroundColour(BACKGROUND)

        self.alarm = WxAlarmPlayer(controller.alarms)
        controller.attach_side_effects(
            alarm=self.alarm,
            notifier=WxNotifier(self),
            prompt=WxConfirmationPrompt(self),
        )

        self.notebook = wx.Notebook(self)
        self.timer_panel = TimerPanel(self.notebook, controller)
        self.task_panel = TaskPanel(self.notebook, controller, self._warn)
        self.week_panel = WeekPanel(self.notebook, controller)
        self.views = {"today": self.timer_panel, "tasks": self.task_panel, "week": self.week_panel}
        for name, panel in self.views.items():
            self.notebook.AddPage(panel, name.title())
        if cfg.last_view in self.views:
            self.notebook.SetSelection(list(self.views).index(cfg.last_view))

        self._build_menu()
        controller.add_listener(self._on_controller_event)
        self.Bind(wx.EVT_CLOSE, self.on_close)
        self.refresh_all()
        controller.resume()

    def _build_menu(self) -> None:
        menubar = wx.MenuBar()
        file_menu = wx.Menu()
        export_item = file_menu.Append(wx.ID_ANY, "Export week to Excel…")
        clear_item = file_menu.Append(wx.ID_ANY, "Clear all data…")
        file_menu.AppendSeparator()
        exit_item = file_menu.Append(wx.ID_EXIT, "Exit")
        settings_menu = wx.Menu()
        timer_item = settings_menu.Append(wx.ID_ANY, "Timer settings…")
        alarm_menu = wx.Menu()
        self.alarm_items = {}
        for sound_id, sound in ALARM_SOUNDS.items():
            item = alarm_menu.AppendRadioItem(wx.ID_ANY, sound.label)
            self.alarm_items[item.GetId()] = sound_id
        custom_item = alarm_menu.AppendRadioItem(wx.ID_ANY, "Custom tone…")
        self.alarm_items[custom_item.GetId()] = CUSTOM_ALARM
        alarm_menu.AppendSeparator()
        preview_item = alarm_menu.Append(wx.ID_ANY, "Preview")
        settings_menu.AppendSubMenu(alarm_menu, "Alarm tone")
        self.notify_item = settings_menu.AppendCheckItem(wx.ID_ANY, "Desktop notifications")
        self.notify_item.Check(self.config_manager.config.notifications_enabled)
        menubar.Append(file_menu, "&File")
        menubar.Append(settings_menu, "&Settings")
        self.SetMenuBar(menubar)

        selected = self.controller.alarms.selected_id()
        for item_id, sound_id in self.alarm_items.items():
            if sound_id == selected:
                menubar.FindItemById(item_id).Check(True)

        self.Bind(wx.EVT_MENU, self.on_export, export_item)
        self.Bind(wx.EVT_MENU, self.on_clear, clear_item)
        self.Bind(wx.EVT_MENU, lambda _evt: self.Close(), exit_item)
        self.Bind(wx.EVT_MENU, self.on_timer_settings, timer_item)
        self.Bind(wx.EVT_MENU, self.on_preview, preview_item)
        self.Bind(wx.EVT_MENU, lambda evt: self.controller.set_notifications_enabled(evt.IsChecked()), self.notify_item)
        for item_id in self.alarm_items:
            self.Bind(wx.EVT_MENU, self.on_alarm_selected, id=item_id)

    def _warn(self, message: str) -> None:
        self.controller.set_status(message, "warning")

    def _on_controller_event(self, topic: str) -> None:
        if topic == "status":
            self.timer_panel.show_status(*self.controller.status)
        elif topic == "timer":
            self.timer_panel.refresh()
        else:
            self.refresh_all()

    def refresh_all(self) -> None:
        self.task_panel.refresh()
        self.timer_panel.refresh()
        self.week_panel.refresh()
        self.timer_panel.show_status(*self.controller.status)

    def on_timer_settings(self, _event: wx.CommandEvent) -> None:
        dialog = TimerSettingsDialog(self, self.controller)
        choice = dialog.ShowModal()
        try:
            if choice == wx.ID_OK:
                self.controller.submit_timer_settings(**dialog.get_values())
            elif choice == wx.ID_RESET:
                self.controller.restore_default_timer_settings()
        except InvalidUserInput as exc:
            self._warn(str(exc))
        finally:
            dialog.Destroy()

    def on_alarm_selected(self, event: wx.CommandEvent) -> None:
        sound_id = self.alarm_items[event.GetId()]
        if sound_id == CUSTOM_ALARM:
            with wx.FileDialog(
                self, "Choose an alarm tone", wildcard="Audio files|*.wav;*.ogg;*.mp3;*.flac;*.m4a;*.aiff",
                style=wx.FD_OPEN | wx.FD_FILE_MUST_EXIST,
            ) as dialog:
                if dialog.ShowModal() != wx.ID_OK:
                    return
                try:
                    self.controller.set_custom_alarm(Path(dialog.GetPath()))
                except InvalidUserInput as exc:
                    self._warn(str(exc))
                    return
        else:
            self.controller.select_alarm(sound_id)
        self.alarm.unlocked = False

    def on_preview(self, _event: wx.CommandEvent) -> None:
        self.controller.preview_alarm(self.controller.alarms.selected_id())

    def on_export(self, _event: wx.CommandEvent) -> None:
        try:
            path = self.controller.export_week()
        except Exception as exc:
            LOGGER.exception("Weekly export failed")
            self.controller.set_status(f"Export failed: {exc}", "error")
            return
        self.controller.set_status(f"Weekly report saved to {path}")

    def on_clear(self, _event: wx.CommandEvent) -> None:
        self.controller.clear_all_data()

    def on_close(self, event: wx.CloseEvent) -> None:  # type: ignore[override]
        width, height = self.GetSize()
        view = list(self.views)[self.notebook.GetSelection()]
        self.controller.save_window(width, height, view)
        self.controller.shutdown()
        event.Skip()


class TasktrackApp(wx.App):
    def __init__(self, controller: AppController, config_manager: ConfigManager):
        self.controller = controller
        self.config_manager = config_manager
        super().__init__(clearSigInt=True)

    def OnInit(self) -> bool:  # type: ignore[override]
        self.frame = TasktrackFrame(self.controller, self.config_manager)
        self.frame.Show()
        return True

    def run(self) -> None:
        self.MainLoop()
