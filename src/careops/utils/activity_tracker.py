# src/careops/utils/activity_tracker.py
# Named loggers for the dashboard's notable user actions
from __future__ import annotations

from typing import Optional

from src.careops.crud.activity import ActivityLog
from src.careops.schemas.activity_log_schema import ActivityEntry


class ActivityLogger:
    def __init__(self, log: ActivityLog) -> None:
        self.log = log

    def _log(self, action: str, icon: str) -> Optional[ActivityEntry]:
        return self.log.record(action, icon)

    # -------- Authentication --------
    def login(self):
        return self._log("Logged in", "🔓")

    def logout(self):
        return self._log("Logged out", "🔒")

    def password_change(self):
        return self._log("Changed password", "🔒")

    # -------- Profile --------
    def profile_update(self):
        return self._log("Updated profile information", "✏️")

    def enable_2fa(self):
        return self._log("Enabled 2FA", "📱")

    # -------- Patients --------
    def patient_added(self, patient_name: str):
        return self._log(f"Added patient: {patient_name}", "👤")

    def patient_updated(self, patient_name: str):
        return self._log(f"Updated patient: {patient_name}", "📝")

    def patient_discharged(self, patient_name: str):
        return self._log(f"Discharged patient: {patient_name}", "✅")

    def transfer_requested(self, patient_name: str):
        return self._log(f"Requested transfer for: {patient_name}", "🔄")

    # -------- Beds --------
    def bed_assigned(self, bed_id: str, patient_name: str):
        return self._log(f"Assigned bed {bed_id} to {patient_name}", "🛏️")

    def bed_released(self, bed_id: str):
        return self._log(f"Released bed {bed_id}", "✅")

    def bed_maintenance(self, bed_id: str):
        return self._log(f"Marked bed {bed_id} for maintenance", "🔧")

    def bed_maintenance_complete(self, bed_id: str):
        return self._log(f"Completed maintenance on bed {bed_id}", "✅")

    # -------- Staff --------
    def staff_added(self, staff_name: str):
        return self._log(f"Added staff: {staff_name}", "👨‍⚕️")

    def staff_updated(self, staff_name: str):
        return self._log(f"Updated staff: {staff_name}", "📝")

    def staff_scheduled(self, staff_name: str):
        return self._log(f"Assigned schedule to {staff_name}", "📅")

    def staff_status_changed(self, staff_name: str, status: str):
        return self._log(f"{staff_name} is now {status}", "👨‍⚕️")

    # -------- Equipment --------
    def equipment_added(self, equipment_name: str):
        return self._log(f"Added equipment: {equipment_name}", "📦")

    def equipment_assigned(self, equipment_name: str):
        return self._log(f"Assigned equipment: {equipment_name}", "🔧")

    def equipment_maintenance(self, equipment_name: str):
        return self._log(f"{equipment_name} moved to maintenance", "⚠️")

    def equipment_maintenance_complete(self, equipment_name: str):
        return self._log(f"{equipment_name} maintenance completed", "✅")

    # -------- Transfers --------
    def transfer_approved(self, patient_name: str):
        return self._log(f"Approved transfer for {patient_name}", "✅")

    def transfer_rejected(self, patient_name: str):
        return self._log(f"Rejected transfer for {patient_name}", "❌")

    def transfer_completed(self, patient_name: str):
        return self._log(f"Completed transfer for {patient_name}", "🔄")

    # -------- Reports / system --------
    def report_generated(self, report_type: str):
        return self._log(f"Generated {report_type} report", "📊")

    def settings_changed(self):
        return self._log("Updated system settings", "⚙️")
