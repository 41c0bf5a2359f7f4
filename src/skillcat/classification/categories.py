"""Predefined category vocabulary."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    name: str
    description: str
    keywords: tuple[str, ...] = Field(default_factory=tuple)


def _cat(slug: str, name: str, description: str, *keywords: str) -> Category:
    return Category(slug=slug, name=name, description=description, keywords=keywords)


CATEGORIES: tuple[Category, ...] = (
    # Development
    _cat("code-generation", "Code Generation", "Generate code, boilerplate, scaffolding",
         "generate", "scaffold", "boilerplate", "template", "create", "init", "new"),
    _cat("refactoring", "Refactoring", "Code restructuring and optimization",
         "refactor", "restructure", "optimize", "clean", "improve", "modernize"),
    _cat("debugging", "Debugging", "Find and fix bugs, error analysis",
         "debug", "fix", "error", "bug", "trace", "diagnose", "troubleshoot"),
    _cat("testing", "Testing", "Unit tests, integration tests, test automation",
         "test", "unit", "integration", "e2e", "spec", "coverage", "mock", "jest", "vitest"),
    _cat("code-review", "Code Review", "Automated code review and analysis",
         "review", "analyze", "lint", "check", "inspect", "audit", "pr"),
    _cat("git", "Git & VCS", "Git operations, commit helpers, branch management",
         "git", "commit", "branch", "merge", "rebase", "version control", "changelog", "github", "gitlab"),
    # Backend
    _cat("api", "API Dev", "API design, REST, GraphQL",
         "api", "rest", "graphql", "openapi", "swagger", "endpoint", "http", "grpc"),
    _cat("database", "Database", "Database management and queries",
         "database", "sql", "query", "migration", "schema", "orm", "prisma", "drizzle", "postgres", "mysql",
         "mongodb"),
    _cat("auth", "Auth", "Authentication and authorization",
         "auth", "authentication", "authorization", "oauth", "jwt", "session", "login", "signup"),
    _cat("caching", "Caching", "Caching strategies and implementation",
         "cache", "redis", "memcached", "cdn", "invalidation"),
    # Frontend
    _cat("ui-components", "UI Components", "UI component generation and styling",
         "ui", "component", "css", "style", "design", "tailwind", "react", "vue", "svelte", "html"),
    _cat("accessibility", "Accessibility", "Accessibility testing and improvements",
         "a11y", "accessibility", "aria", "wcag", "screen reader"),
    _cat("animation", "Animation", "UI animations and transitions",
         "animation", "transition", "motion", "framer", "gsap", "css animation"),
    _cat("responsive", "Responsive", "Responsive design and mobile-first",
         "responsive", "mobile", "breakpoint", "media query", "adaptive"),
    # DevOps & infra
    _cat("ci-cd", "CI/CD", "Continuous integration and deployment",
         "ci", "cd", "pipeline", "deploy", "github actions", "jenkins", "circleci"),
    _cat("docker", "Docker", "Containerization and Docker",
         "docker", "container", "dockerfile", "compose", "image"),
    _cat("kubernetes", "Kubernetes", "Kubernetes orchestration",
         "kubernetes", "k8s", "helm", "pod", "deployment", "service"),
    _cat("cloud", "Cloud", "Cloud services and infrastructure",
         "aws", "gcp", "azure", "cloudflare", "vercel", "netlify", "terraform", "pulumi"),
    _cat("monitoring", "Monitoring", "Logging, metrics, and observability",
         "monitor", "log", "trace", "metric", "alert", "observability", "datadog", "grafana"),
    # Quality & security
    _cat("security", "Security", "Security scanning and vulnerability detection",
         "security", "vulnerability", "scan", "audit", "owasp", "penetration", "xss", "sql injection"),
    _cat("performance", "Performance", "Performance profiling and optimization",
         "performance", "optimize", "profile", "benchmark", "speed", "memory", "lighthouse"),
    _cat("linting", "Linting", "Code linting and formatting",
         "lint", "eslint", "prettier", "format", "style", "biome"),
    _cat("types", "Types", "Type checking and type generation",
         "typescript", "type", "typing", "zod", "schema", "validation"),
    # Documentation
    _cat("documentation", "Docs Gen", "Generate and maintain documentation",
         "doc", "readme", "api", "comment", "jsdoc", "typedoc", "swagger", "markdown"),
    _cat("comments", "Comments", "Code comments and annotations",
         "comment", "annotation", "docstring", "explain"),
    _cat("i18n", "i18n", "Localization and translation",
         "i18n", "l10n", "translate", "locale", "language", "internationalization"),
    # Data
    _cat("data-processing", "Processing", "Data transformation and parsing",
         "data", "transform", "parse", "json", "csv", "xml", "format", "etl"),
    _cat("analytics", "Analytics", "Data analysis and visualization",
         "analytics", "chart", "graph", "visualization", "dashboard", "report"),
    _cat("scraping", "Scraping", "Web scraping and data extraction",
         "scrape", "crawl", "extract", "puppeteer", "playwright", "cheerio"),
    _cat("math", "Math", "Mathematical computations, formulas, statistics",
         "math", "mathematics", "calculation", "formula", "statistics", "algebra", "calculus", "geometry",
         "numerical"),
    # AI & ML
    _cat("prompts", "Prompts", "Prompt engineering and templates",
         "prompt", "llm", "gpt", "claude", "chatgpt", "template", "system prompt"),
    _cat("embeddings", "Embeddings", "Vector embeddings and similarity",
         "embedding", "vector", "similarity", "rag", "semantic", "search"),
    _cat("agents", "Agents", "AI agents and automation",
         "agent", "autonomous", "chain", "langchain", "workflow"),
    _cat("ml-ops", "ML Ops", "Machine learning operations",
         "mlops", "model", "training", "inference", "pipeline", "jupyter"),
    # Productivity
    _cat("productivity", "Productivity", "General productivity helpers"),
    _cat("automation", "Automation", "Task automation and scripting",
         "automate", "script", "task", "workflow", "batch", "cron", "schedule"),
    _cat("file-ops", "File Ops", "File manipulation and management",
         "file", "directory", "folder", "copy", "move", "rename", "search", "glob"),
    _cat("cli", "CLI Tools", "Command line utilities",
         "cli", "terminal", "shell", "bash", "command", "script"),
    _cat("templates", "Templates", "Project and code templates",
         "template", "starter", "boilerplate", "scaffold", "cookiecutter"),
    # Content
    _cat("writing", "Writing", "Content writing and editing",
         "write", "content", "blog", "article", "copy", "edit", "proofread"),
    _cat("email", "Email", "Email composition and templates",
         "email", "mail", "newsletter", "template", "outreach"),
    _cat("social", "Social", "Social media content",
         "social", "twitter", "linkedin", "post", "thread", "hashtag"),
    _cat("seo", "SEO", "Search engine optimization",
         "seo", "meta", "keyword", "search", "ranking", "sitemap"),
    # Lifestyle
    _cat("finance", "Finance", "Personal finance, budgeting, financial tools",
         "finance", "budget", "money", "investment", "expense", "accounting", "tax", "banking"),
    _cat("web3-crypto", "Web3 & Crypto", "Blockchain, cryptocurrency, Web3 development",
         "web3", "crypto", "blockchain", "ethereum", "solidity", "nft", "defi", "wallet", "smart contract"),
    _cat("legal", "Legal", "Legal document generation and compliance",
         "legal", "law", "contract", "compliance", "policy", "terms", "license", "agreement"),
    _cat("academic", "Academic", "Academic writing, research, citations",
         "academic", "research", "paper", "citation", "thesis", "dissertation", "bibliography", "scholarly"),
    _cat("game-dev", "Game Dev", "Game development and game engine tools",
         "game", "gaming", "unity", "unreal", "godot", "gamedev", "sprite", "physics", "level design"),
)  # fmt: skip

CATEGORY_SLUGS: frozenset[str] = frozenset(category.slug for category in CATEGORIES)


def get_category(slug: str) -> Category | None:
    return next((category for category in CATEGORIES if category.slug == slug), None)
