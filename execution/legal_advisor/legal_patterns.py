"""
Static Pattern and Prompt Definitions for the Legal Advisor

All regex patterns, category tables, and prompt templates live here.
Modules import from here instead of defining tables inline.

Category labels MUST match the `category` values stored in the vector table
(Arabic folder names from the corpus plus their French equivalents).
"""

import re

# =============================================================================
# Casual Pre-filter Patterns (greetings, identity, thanks)
# =============================================================================

CASUAL_PATTERNS = {
    "greeting": [
        re.compile(r"^(hi|hello|hey|yo|sup)$", re.IGNORECASE),
        re.compile(r"^(مرحبا|سلام|السلام عليكم|اهلا|أهلا|صباح الخير|مساء الخير)$"),
        re.compile(r"^(bonjour|salut|bonsoir|coucou)$", re.IGNORECASE),
        re.compile(r"^(salam|slm|labas|ahlan)$", re.IGNORECASE),
    ],
    "identity": [
        re.compile(r"^who\s+(are\s+)?you", re.IGNORECASE),
        re.compile(r"^what('s|\s+is)\s+your\s+name", re.IGNORECASE),
        re.compile(r"^(من أنت|من انت|شكون نت|شكون انت|انت شكون)"),
        re.compile(r"^(qui es[- ]tu|qui êtes[- ]vous|c'est qui)", re.IGNORECASE),
    ],
    "thanks": [
        re.compile(r"^(thanks?|thank\s+you|thx)$", re.IGNORECASE),
        re.compile(r"^(شكرا|بارك الله فيك|متشكر)"),
        re.compile(r"^(merci|merci beaucoup)$", re.IGNORECASE),
    ],
}

# =============================================================================
# Legal Domain → Vector Store Categories
# =============================================================================

DOMAIN_TO_CATEGORIES = {
    "family": ["الأسرية", "famille", "statut personnel"],
    "criminal": ["الجنائية", "الأمنية", "pénal", "criminel"],
    "business": ["التجارية", "الاستثمار", "commercial", "société"],
    "labor": ["الاجتماعية", "الوظيفة العمومية", "travail", "emploi"],
    "property": ["العقارية", "الكرائية", "immobilier", "foncier"],
    "administrative": ["الإدارية", "الجماعات الترابية", "administratif"],
    "civil": ["المدنية", "civil", "obligations"],
    "constitutional": ["الدستورية", "التشريعية", "التنفيذية", "القضائية", "constitution"],
    "tax": ["الجبائية", "المالية", "fiscal", "impôts"],
    "other": [],  # unfiltered search
}

# =============================================================================
# Contract Type → Vector Store Categories
# =============================================================================

CONTRACT_TYPE_CATEGORIES = {
    "rental": {
        "primary": ["العقارية", "الكرائية", "immobilier", "foncier", "bail", "location"],
        "secondary": ["المدنية", "civil", "obligations", "contrats"],
    },
    "employment": {
        "primary": ["الاجتماعية", "travail", "emploi", "sécurité sociale"],
        "secondary": ["المدنية", "civil", "obligations"],
    },
    "nda": {
        "primary": ["التجارية", "commercial", "société", "confidentialité"],
        "secondary": ["المدنية", "civil", "contrats", "obligations"],
    },
    "service": {
        "primary": ["التجارية", "commercial", "commerce", "prestation"],
        "secondary": ["المدنية", "civil", "obligations", "contrats"],
    },
    "sale": {
        "primary": ["التجارية", "العقارية", "commercial", "immobilier", "vente"],
        "secondary": ["المدنية", "civil", "obligations", "contrats"],
    },
    "custom": {
        "primary": [],
        "secondary": ["المدنية", "civil", "obligations", "contrats"],
    },
}

CONTRACT_TYPES = tuple(CONTRACT_TYPE_CATEGORIES)

# Compliance retrieval queries for the audit phase: (label, template, limit)
COMPLIANCE_QUERIES = [
    ("mandatory", "clauses obligatoires contrat {contract_type} droit marocain", 8),
    ("prohibited", "clauses abusives interdites contrat {contract_type} maroc", 5),
    ("formalities", "formalités légales obligatoires contrat {contract_type} maroc", 5),
]

# =============================================================================
# Language Detection and Response Depth
# =============================================================================

ARABIC_SCRIPT = re.compile(r"[؀-ۿ]")

FRENCH_MARKERS = re.compile(
    r"\b(je|tu|il|nous|vous|ils|est|sont|avoir|être|pour|dans|avec|contrat|bail|travail)\b",
    re.IGNORECASE,
)

LANGUAGE_NAMES = {"en": "English", "fr": "French", "ar": "Arabic"}

DEEP_QUERY_WORD_COUNT = 15

DEEP_QUERY_KEYWORDS = [
    # English
    "story", "situation", "happened", "problem", "issue", "case",
    "accident", "died", "death", "killed", "murder",
    "divorce", "married", "husband", "wife", "children", "custody",
    "inheritance", "heir", "fired", "dismissed", "boss",
    "police", "arrested", "prison", "jail", "court",
    "scam", "fraud", "debt", "loan",
    # French
    "histoire", "problème", "décès", "meurtre", "marié", "mari", "femme",
    "enfants", "garde", "héritage", "succession", "licencié", "renvoyé",
    "patron", "arrêté", "tribunal", "arnaque", "fraude", "dette", "crédit",
    # Arabic
    "مشكلة", "قصة", "حصل", "وقع", "حادثة", "وفاة", "توفي", "قتل",
    "طلاق", "زواج", "زوج", "زوجة", "أطفال", "حضانة", "إرث", "ميراث",
    "طرد", "فصل", "شرطة", "اعتقال", "سجن", "محكمة", "نصب", "احتيال", "دين",
]

DEPTH_INSTRUCTIONS = {
    "deep": """

=== RESPONSE MODE: DEEP DIVE ===
The question describes a detailed situation.
1. Give a thorough analysis in clear sections (Legal Framework, Application to the Case, Recommendations).
2. Address the relevant nuances and "what if" scenarios.
3. Do not be brief.
""",
    "basic": """

=== RESPONSE MODE: CONCISE ===
The question is informational.
1. Answer directly and concisely.
2. Cite the relevant article or law immediately.
3. Skip any preamble.
""",
}

# =============================================================================
# Contract Language Instructions
# =============================================================================

CONTRACT_LANGUAGE_INSTRUCTIONS = {
    "ar": "يجب أن يكون العقد والمحادثة بالكامل باللغة العربية. استخدم المصطلحات القانونية المغربية.",
    "fr": "OBLIGATOIRE: Le contrat et la conversation doivent être ENTIÈREMENT en français. Utilisez la terminologie juridique marocaine.",
    "en": "MANDATORY: The contract and the conversation must be ENTIRELY in English, using Moroccan legal terminology translated to English.",
}

# =============================================================================
# LLM Prompt Templates
# =============================================================================

LLM_PROMPTS = {
    "intent_classifier": """You are the intent classifier of a Moroccan legal assistant.
Classify the user's message and return ONLY a JSON object.

Casual messages (greetings, "who are you", thanks, small talk):
{"type":"casual","subtype":"greeting|identity|chitchat|thanks"}

Legal messages (any question about law, rights, procedures or documents):
{"type":"legal","domain":"<domain>","complexity":"simple|complex"}

Domains: family, criminal, business, labor, property, administrative, civil, constitutional, tax, other

Examples:
- "hi" -> {"type":"casual","subtype":"greeting"}
- "شكرا" -> {"type":"casual","subtype":"thanks"}
- "ما هي حقوق العامل" -> {"type":"legal","domain":"labor","complexity":"simple"}
- "procédure de divorce" -> {"type":"legal","domain":"family","complexity":"complex"}

JSON ONLY. NO EXPLANATION.""",

    "legal_system": """You are 9anon, a legal reasoning assistant specialised in Moroccan law.
Your priorities are legal correctness, proper legal qualification (التكييف القانوني),
and a clear separation between facts, law and interpretation.

LANGUAGE: Reply in exactly the language and script of the user's latest message.
Never mix languages and never default to Arabic.

REASONING RULES:
1. Apply an article only when every one of its elements is established by the facts.
   If an element is missing, say the article does not apply.
2. Presume good faith unless intent is clearly established.
3. Analyse in order: accident, negligence, misdemeanour (جنحة), felony (جناية).
4. Do not stack offences or expand liability beyond the described conduct.
5. Stay within the legal domain of the question.
6. When citing an article, say briefly why it applies.
7. When the outcome depends on evidence or judicial discretion, say so.

CONTEXT: Legal context in the prompt is internal Moroccan legal data.
Say "Under Moroccan law..." rather than "based on the context you provided".

You explain the law; you do not act as the user's lawyer. When useful, end with a
reminder that facts and evidence matter and that a Moroccan lawyer should be consulted.""",

    "casual_system": """You are 9anon (قانون), a friendly Moroccan law assistant.

Reply in exactly the same language as the user (French -> French, English -> English,
Arabic -> Arabic, Darija -> Darija). Never default to Arabic.

Only greet if the user greeted you or this is the first message.
Be natural and conversational, match the user's tone, and keep it short.""",

    "web_search_system": "Search for Moroccan law information. Return factual, well-cited results.",

    "title_system": """Generate a SHORT chat title (max 5 words) for the user's first message.
- Same language as the message
- No quotes or punctuation
- Focus on the main topic
- For greetings use a generic title such as "New Conversation" or "محادثة جديدة"

Examples:
- "how can I divorce my wife" -> Divorce Procedure
- "ما هي حقوق العامل" -> حقوق العامل
- "bonjour" -> Nouvelle conversation""",

    "contract_drafting": """You are 9anon Contract Builder, an expert in drafting contracts under Moroccan law.

{language_instruction}

=== MOROCCAN LAW REFERENCE (verified legal database) ===
{legal_context}
========================================================

RULES:
1. Ground every clause in Moroccan law and reference specific articles.
2. Include every clause the law makes mandatory for this contract type.
3. Never invent laws; only reference articles present in the reference above.
4. If a legal requirement is unclear, ask the user or state the limitation.
5. Follow the usual structure of Moroccan contracts (preamble, articles, signatures).

WORKFLOW:
- New contract: ask clarifying questions first (parties, terms, specifics), then draft the FULL contract.
- Edit request: change ONLY the requested part and keep everything else identical.
- Question: answer it without touching the contract.

OUTPUT FORMAT (MANDATORY):
<response>
Your conversational message: what you did, which articles apply, or your follow-up questions.
Never put contract text here.
</response>

<contract>
The FULL, self-contained HTML of the contract (h1, h2, p, ol, li, strong).
Leave this tag empty when you are only chatting.
</contract>""",

    "contract_review": """You are a Moroccan legal compliance auditor reviewing a drafted contract.

{language_instruction}

=== MOROCCAN LAW COMPLIANCE REFERENCE ===
{compliance_context}
=========================================

CHECKLIST:
1. Are all clauses mandatory for this contract type present?
2. Does any clause contradict Moroccan legislation?
3. Are there abusive or unenforceable terms?
4. Are the legal formalities covered (signatures, dates, witnesses, registration)?
5. Is the wording precise enough to avoid disputes?
6. Are both parties' rights protected?
7. Are penalty and termination clauses within legal limits?

Return ONLY valid JSON:
{{
    "issues": [
        {{
            "clause": "Article X or section description",
            "severity": "critical" | "warning" | "info",
            "description": "What is wrong and why",
            "lawReference": "Article / law reference"
        }}
    ],
    "correctedContract": "The FULL corrected HTML if issues were found, otherwise an empty string",
    "summary": "One to three sentences for the user"
}}

Severity: critical = missing mandatory clause, illegal or void term; warning = likely problem;
info = improvement. Flag real legal issues only. A sound contract gets an empty issues array.""",
}

# =============================================================================
# User-visible Step Messages
# =============================================================================

STEP_MESSAGES = {
    "analyzing": "Analyzing your question...",
    "scanning": "Scanning Moroccan legal database...",
    "found_references": "Found {count} relevant legal references.",
    "web_enrichment": "Enriching with online legal sources...",
    "generation_error": "Error occurred during generation.",
    "contract_searching": "Searching Moroccan legal database...",
    "contract_no_references": "No specific references found, using general Moroccan law knowledge.",
    "contract_drafting": "Drafting contract under Moroccan law...",
    "contract_reviewing": "Reviewing contract for legal compliance...",
    "contract_critical": "Contract ready: {count} critical issue(s) found and corrected.",
    "contract_minor": "Contract ready: {count} minor issue(s) noted.",
    "contract_clean": "Contract ready: no legal issues found.",
}

NO_DOCUMENTS_CONTEXT = "No specific legal documents found in the database for this query."

NO_COMPLIANCE_CONTEXT = "No specific compliance references found. Use general Moroccan legal principles."
