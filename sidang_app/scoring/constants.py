from enum import Enum


class ExamType(str, Enum):
    SEMINAR_PROPOSAL = "Seminar Proposal"
    SIDANG_SKRIPSI = "Sidang Skripsi"

    @classmethod
    def from_value(cls, raw):
        """Accepts the display value or the member name, case-insensitively."""
        s = (raw.value if isinstance(raw, ExamType) else str(raw or "")).strip().lower()
        for member in cls:
            if s in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Jenis ujian tidak dikenal: {raw}")


class RoleCategory(str, Enum):
    SUPERVISOR = "supervisor"
    EXAMINER = "examiner"


class EvaluatorRole(str, Enum):
    PEMBIMBING_1 = "Pembimbing 1"
    PEMBIMBING_2 = "Pembimbing 2"
    PENGUJI_1 = "Penguji 1"
    PENGUJI_2 = "Penguji 2"

    @classmethod
    def from_value(cls, raw):
        s = (raw.value if isinstance(raw, EvaluatorRole) else str(raw or "")).strip().lower()
        for member in cls:
            if s in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Peran penilai tidak dikenal: {raw}")

    @property
    def category(self):
        if self in (EvaluatorRole.PEMBIMBING_1, EvaluatorRole.PEMBIMBING_2):
            return RoleCategory.SUPERVISOR
        return RoleCategory.EXAMINER

    @property
    def weight(self):
        return FINAL_WEIGHTS[self]

    @property
    def roster_field(self):
        """Student attribute holding the evaluator assigned to this role."""
        return ROSTER_FIELDS[self]

    @property
    def short_label(self):
        return SHORT_LABELS[self]


FINAL_WEIGHTS = {
    EvaluatorRole.PEMBIMBING_1: 0.35,
    EvaluatorRole.PEMBIMBING_2: 0.25,
    EvaluatorRole.PENGUJI_1: 0.20,
    EvaluatorRole.PENGUJI_2: 0.20,
}

ROSTER_FIELDS = {
    EvaluatorRole.PEMBIMBING_1: "pembimbing1",
    EvaluatorRole.PEMBIMBING_2: "pembimbing2",
    EvaluatorRole.PENGUJI_1: "penguji1",
    EvaluatorRole.PENGUJI_2: "penguji2",
}

SHORT_LABELS = {
    EvaluatorRole.PEMBIMBING_1: "p1",
    EvaluatorRole.PEMBIMBING_2: "p2",
    EvaluatorRole.PENGUJI_1: "e1",
    EvaluatorRole.PENGUJI_2: "e2",
}

# Only the second supervisor files the record of proceedings
PROCEEDINGS_ROLE = EvaluatorRole.PEMBIMBING_2

SUPERVISOR_RUBRIC_ITEMS = [
    "Kedisiplinan",
    "Kesopanan",
    "Tanggung Jawab",
    "Pemahaman Permasalahan dan Konsep Penelitian",
    "Pemahaman Tujuan Penelitian",
    "Perencanaan Desain Penelitian dan Pemilihan Metode",
    "Pemahaman Instrumen Penelitian",
    "Pemahaman Teknik Pengambilan Data",
    "Pemahaman Metode Analisis Data",
    "Keterkaitan Referensi Permasalahan Penelitian",
    "Sistematika Penulisan",
    "Pemilihan Kata dan Bahasa",
    "Teknik Mengutip Referensi",
    "Kerapian",
    "Efektifitas Penggunaan Waktu",
    "Teknik Pembuatan Powerpoint & Multimedia",
    "Teknik Presentasi Dalam Penyajian",
    "Bahasa Tubuh Dalam Presentasi",
    "Layanan Terhadap Audiens",
    "Wawasan Umum diluar Topik",
]
RUBRIC_MIN = 1
RUBRIC_MAX = 5

# Ordered: (key, label, weight)
EXAMINER_COMPONENTS = [
    ("sistematika", "Sistematika", 0.20),
    ("isi", "Isi", 0.30),
    ("penyajian", "Penyajian", 0.20),
    ("tanyaJawab", "Tanya Jawab", 0.30),
]
EXAMINER_WEIGHTS = {key: weight for key, _, weight in EXAMINER_COMPONENTS}
COMPONENT_MIN = 0.0
COMPONENT_MAX = 100.0

# Highest qualifying band wins; lower bounds are inclusive
GRADE_BANDS = [
    (90, "A"),
    (85, "A-"),
    (80, "B+"),
    (75, "B"),
    (70, "B-"),
    (65, "C+"),
    (60, "C"),
    (55, "C-"),
    (50, "D"),
]
FAIL_LETTER = "E"
GRADE_LETTERS = [letter for _, letter in GRADE_BANDS] + [FAIL_LETTER]
PASS_THRESHOLD = 55

PASS_LABEL = "LULUS"
FAIL_LABEL = "TIDAK LULUS"

COMPLETE = "complete"
PARTIAL = "partial"
NONE = "none"
COMPLETION_LABELS = {
    COMPLETE: "Lengkap",
    PARTIAL: "Sebagian",
    NONE: "Belum Ada",
}

EVALUATOR_PLACEHOLDER = "-"
