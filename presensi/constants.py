GENDER_CHOICES = ("L", "P")

# Sheet titles that refer to the same tab under an older name
SHEET_ALIASES = {
    "Peserta": ["Participants"],
    "Participants": ["Peserta"],
    "Presensi": ["Attendance"],
    "Attendance": ["Presensi"],
}

DEFAULT_ATTENDANCE_SHEET = "Presensi"
DEFAULT_PARTICIPANTS_SHEET = "Peserta"

ATTENDANCE_SHEET_COLUMNS = [
    "waktu_input",
    "nama",
    "alamat",
    "jenis_kelamin",
    "id_perangkat",
]
PARTICIPANT_SHEET_COLUMNS = ["dibuat_pada", "nama", "alamat", "jenis_kelamin"]
SESSION_HEADER_PREFIX = "Tanggal Kajian: "
EMPTY_SHEET_PLACEHOLDER = "Belum ada data presensi"

ATTENDANCE_EXPORT_COLUMNS = [
    "tanggal_kajian",
    "dibuat_pada",
    "nama",
    "alamat",
    "jenis_kelamin",
    "id_perangkat",
]
LEADERBOARD_EXPORT_COLUMNS = [
    "jenis",
    "nama",
    "total_hadir",
    "streak_terbaik",
    "streak_saat_ini",
    "hadir",
    "tidak_hadir",
]

SHEET_SYNC_FAILED = "SHEET_SYNC_FAILED"

LEADERBOARD_LIMIT = 10
EXPORT_ROW_LIMIT = 5000
