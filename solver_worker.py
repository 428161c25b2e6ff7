"""
솔버/탐험기를 백그라운드 스레드에서 실행하는 호스트-워커 경계

요청 메시지 (호스트 -> 엔진):
    {"action": "solve" | "explore" | "cancel", "data": {...}}
응답 메시지 (엔진 -> 호스트):
    {"type": "status", "message": str}
    {"type": "result", "result": ...}

해답 결과에는 outcome 필드("solved", "no_solution", "cancelled", "error")가 추가되어
취소와 해답 없음이 구분됩니다.
"""

from __future__ import annotations
from typing import Callable, Optional

from PyQt6.QtCore import QObject, QThread, QTimer, pyqtSignal

from i18n import t
from shape_operations import DEFAULT_MAX_LAYERS
from shape_solver import (
    ShapeSolver, CancelToken, Cancelled, NoSolutionFound,
    DEFAULT_HEURISTIC_DIVISOR, DEFAULT_MAX_STATES_PER_LEVEL,
)
from shape_explorer import ShapeExplorer, DEFAULT_DEPTH_LIMIT

PostMessage = Callable[[dict], None]

OUTCOME_SOLVED = "solved"
OUTCOME_NO_SOLUTION = "no_solution"
OUTCOME_CANCELLED = "cancelled"
OUTCOME_ERROR = "error"

# 협조적 취소 후 강제 종료까지 기다리는 시간 (ms)
CANCEL_GRACE_MS = 500


def status_message(message: str) -> dict:
    return {"type": "status", "message": message}


def result_message(result) -> dict:
    return {"type": "result", "result": result}


def _empty_solve_result(outcome: str, states_explored: int = 0) -> dict:
    return {"solutionPath": None, "depth": None, "statesExplored": states_explored, "outcome": outcome}


def _failed_result(action: Optional[str], outcome: str):
    """결과 없이 끝난 작업의 result 페이로드. 탐험은 None 입니다."""
    if action == "solve":
        return _empty_solve_result(outcome)
    return None


def handle_solve(data: dict, cancel_token: CancelToken, post_message: PostMessage):
    def on_status(message: str):
        post_message(status_message(message))

    try:
        solver = ShapeSolver(
            data["targetShapeCode"],
            data.get("startingShapeCodes", []),
            data.get("enabledOperations", []),
            max_layers=data.get("maxLayers") or DEFAULT_MAX_LAYERS,
            max_states_per_level=data.get("maxStatesPerLevel") or DEFAULT_MAX_STATES_PER_LEVEL,
            prevent_waste=bool(data.get("preventWaste", False)),
            orientation_sensitive=bool(data.get("orientationSensitive", False)),
            monolayer_painting=bool(data.get("monolayerPainting", False)),
            heuristic_divisor=data.get("heuristicDivisor") or DEFAULT_HEURISTIC_DIVISOR,
            search_method=data.get("searchMethod", "A*"),
            cancel_token=cancel_token,
            on_status=on_status,
        )
        result = solver.solve()
    except Cancelled:
        post_message(status_message(t("status.cancelled")))
        post_message(result_message(_empty_solve_result(OUTCOME_CANCELLED)))
        return
    except NoSolutionFound as e:
        post_message(status_message(t("status.no_solution")))
        post_message(result_message(_empty_solve_result(OUTCOME_NO_SOLUTION, e.states_explored)))
        return
    except (ValueError, KeyError) as e:
        # MalformedShapeCode, IncompatibleShapeArity 포함
        post_message(status_message(t("status.error", error=str(e))))
        post_message(result_message(_empty_solve_result(OUTCOME_ERROR)))
        return

    payload = result.to_dict()
    payload["outcome"] = OUTCOME_SOLVED
    post_message(status_message(t("status.solved", depth=result.depth, states=result.states_explored)))
    post_message(result_message(payload))


def handle_explore(data: dict, cancel_token: CancelToken, post_message: PostMessage):
    def on_status(message: str):
        post_message(status_message(message))

    try:
        explorer = ShapeExplorer(
            data.get("startingShapeCodes", []),
            data.get("enabledOperations", []),
            depth_limit=data.get("depthLimit") or DEFAULT_DEPTH_LIMIT,
            max_layers=data.get("maxLayers") or DEFAULT_MAX_LAYERS,
            cancel_token=cancel_token,
            on_status=on_status,
        )
        graph = explorer.explore()
    except Cancelled:
        post_message(status_message(t("status.cancelled")))
        post_message(result_message(None))
        return
    except ValueError as e:
        post_message(status_message(t("status.error", error=str(e))))
        post_message(result_message(None))
        return

    post_message(result_message(graph))


def handle_request(request: dict, cancel_token: CancelToken, post_message: PostMessage):
    """
    요청 하나를 동기적으로 처리합니다. Qt 와 무관한 프로토콜 핵심입니다.

    Args:
        request (dict): {"action": ..., "data": {...}}
        cancel_token (CancelToken): 이 요청의 취소 토큰
        post_message: 응답 메시지를 받을 콜백
    """
    action = request.get("action")
    data = request.get("data") or {}

    if action == "solve":
        handle_solve(data, cancel_token, post_message)
    elif action == "explore":
        handle_explore(data, cancel_token, post_message)
    elif action == "cancel":
        cancel_token.cancel()
        post_message(status_message(t("status.cancelled")))
    else:
        post_message(status_message(t("status.unknown_action", action=action)))


class SolverThread(QThread):
    """요청 하나를 백그라운드에서 실행하는 스레드"""
    message = pyqtSignal(dict)

    def __init__(self, request: dict, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.request = request
        self.cancel_token = CancelToken()

    def cancel(self):
        self.cancel_token.cancel()

    @property
    def action(self):
        return self.request.get("action")

    def run(self):
        try:
            handle_request(self.request, self.cancel_token, self.message.emit)
        except Exception as e:
            # 엔진 내부 오류는 스레드를 죽이지 않고 상태 메시지로 보고합니다
            self.message.emit(status_message(t("status.error", error=str(e))))
            self.message.emit(result_message(_failed_result(self.action, OUTCOME_ERROR)))


class SolverHost(QObject):
    """
    한 번에 하나의 작업만 실행하는 호스트.
    새 요청이 오면 이전 작업은 취소 후 종료됩니다.
    """
    message = pyqtSignal(dict)

    def __init__(self, parent: Optional[QObject] = None, grace_ms: int = CANCEL_GRACE_MS):
        super().__init__(parent)
        self.grace_ms = grace_ms
        self._thread: Optional[SolverThread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.isRunning()

    def post_message(self, request: dict):
        action = request.get("action")
        if action == "cancel":
            if self.is_running:
                # 취소 메시지는 작업 스레드(또는 강제 종료 시 호스트)가 보냅니다
                self.cancel()
            else:
                self.message.emit(status_message(t("status.cancelled")))
            return

        self.stop()
        thread = SolverThread(request)
        thread.message.connect(self.message)
        self._thread = thread
        thread.start()

    def cancel(self):
        """협조적 취소를 요청하고, grace_ms 안에 끝나지 않으면 강제 종료를 예약합니다."""
        thread = self._thread
        if thread is None:
            return
        thread.cancel()
        QTimer.singleShot(self.grace_ms, lambda: self._force_stop(thread))

    def _force_stop(self, thread: SolverThread):
        # 이미 끝났거나 새 작업으로 교체된 경우
        if thread is not self._thread or not thread.isRunning():
            return
        self._terminate(thread)
        self.message.emit(status_message(t("status.cancelled")))
        self.message.emit(result_message(_failed_result(thread.action, OUTCOME_CANCELLED)))

    def _terminate(self, thread: SolverThread):
        thread.terminate()
        thread.wait()
        self._release(thread)

    def _release(self, thread: SolverThread):
        try:
            thread.message.disconnect(self.message)
        except TypeError:
            pass
        if thread is self._thread:
            self._thread = None

    def stop(self):
        """협조적 취소 후, 유예 시간 안에 끝나지 않으면 강제 종료합니다."""
        thread = self._thread
        if thread is None:
            return
        thread.cancel()
        if thread.wait(self.grace_ms):
            self._release(thread)
        else:
            self._terminate(thread)

    def wait(self, msecs: int = -1) -> bool:
        if self._thread is None:
            return True
        if msecs < 0:
            return self._thread.wait()
        return self._thread.wait(msecs)
