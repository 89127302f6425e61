"""
Database Schema Reference
=========================

This file provides a quick reference for all database tables and columns.
For actual SQLAlchemy models, see: mindsy/db/models.py

"""

# ============================================================================
# STUDY_NODES - Per-user folder forest (courses, years, subjects, ...)
# ============================================================================
#
# | Column        | Type                | Constraints                          |
# |---------------|---------------------|--------------------------------------|
# | id            | VARCHAR(36)         | PRIMARY KEY (uuid)                   |
# | user_id       | VARCHAR(36)         | NOT NULL, INDEX                      |
# | parent_id     | VARCHAR(36)         | NULLABLE, FK(study_nodes.id) CASCADE |
# | name          | TEXT                | NOT NULL                             |
# | type          | ENUM(StudyNodeType) | NOT NULL                             |
# | description   | TEXT                | NULLABLE                             |
# | color         | VARCHAR(32)         | NULLABLE                             |
# | icon          | VARCHAR(64)         | NULLABLE                             |
# | sort_order    | INTEGER             | NOT NULL, DEFAULT 0                  |
# | is_pinned     | BOOLEAN             | NOT NULL, DEFAULT FALSE, INDEX       |
# | node_metadata | JSON                | DEFAULT {}                           |
# | created_at    | TIMESTAMP(TZ)       | NOT NULL, DEFAULT now()              |
# | updated_at    | TIMESTAMP(TZ)       | NOT NULL, DEFAULT now()              |
#
# Unique: (user_id, parent_id, name)
#
# Enums:
#   StudyNodeType: 'course' | 'year' | 'subject' | 'semester' | 'custom'
#
# Invariants:
#   - the parent chain never loops (checked before every parent change)
#   - a parent always belongs to the same user


# ============================================================================
# JOBS - One recording turned into notes
# ============================================================================
#
# | Column                  | Type            | Constraints                         |
# |-------------------------|-----------------|-------------------------------------|
# | job_id                  | VARCHAR(64)     | PRIMARY KEY (job_<ms>_<13 chars>)   |
# | user_id                 | VARCHAR(36)     | NOT NULL, INDEX                     |
# | lecture_title           | VARCHAR(255)    | NOT NULL                            |
# | course_subject          | VARCHAR(255)    | NULLABLE                            |
# | study_node_id           | VARCHAR(36)     | NULLABLE, FK(study_nodes.id) SET NULL|
# | status                  | ENUM(JobStatus) | NOT NULL, INDEX                     |
# | audio_file_path         | TEXT            | NULLABLE, INDEX (uploads bucket)    |
# | pdf_file_path           | TEXT            | NULLABLE (uploads bucket)           |
# | output_pdf_path         | TEXT            | NULLABLE (generated-notes bucket)   |
# | md_file_path            | TEXT            | NULLABLE (generated-notes bucket)   |
# | txt_file_path           | TEXT            | NULLABLE (generated-notes bucket)   |
# | duration_minutes        | INTEGER         | NULLABLE, >= 1 once completed       |
# | processing_metadata     | JSON            | NULLABLE                            |
# | error_message           | TEXT            | NULLABLE (set when failed)          |
# | created_at              | TIMESTAMP(TZ)   | NOT NULL, DEFAULT now()             |
# | updated_at              | TIMESTAMP(TZ)   | NOT NULL, DEFAULT now()             |
# | processing_completed_at | TIMESTAMP(TZ)   | NULLABLE (completed or failed)      |
#
# Enums:
#   JobStatus: 'uploading' | 'processing' | 'completed' | 'failed'
#
# Relationships:
#   - study_node: MANY-TO-ONE -> study_nodes.id
#   - notes:      ONE-TO-MANY -> notes.job_id (CASCADE DELETE)


# ============================================================================
# NOTES - Generated content for a job (two column layouts)
# ============================================================================
#
# | Column          | Type          | Constraints                          |
# |-----------------|---------------|--------------------------------------|
# | id              | VARCHAR(36)   | PRIMARY KEY (uuid)                   |
# | job_id          | VARCHAR(64)   | NOT NULL, FK(jobs.job_id), INDEX     |
# | user_id         | VARCHAR(36)   | NOT NULL, INDEX                      |
# | title           | VARCHAR(255)  | NULLABLE                             |
# | course_subject  | VARCHAR(255)  | NULLABLE                             |
# | notes_column    | TEXT          | NULLABLE (legacy body)               |
# | cue_column      | TEXT          | NULLABLE (legacy cue bullets)        |
# | summary_section | TEXT          | NULLABLE (legacy summary)            |
# | transcript_text | TEXT          | NULLABLE (both layouts)              |
# | content         | TEXT          | NULLABLE (current body, verbatim)    |
# | summary         | TEXT          | NULLABLE (current)                   |
# | key_points      | JSON          | NULLABLE (current, list of strings)  |
# | created_at      | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()              |
# | updated_at      | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()              |
#
# Layout:
#   content IS NOT NULL -> current row
#   otherwise           -> legacy row (notes_column, or transcript_text only)


# ============================================================================
# NOTIFICATIONS - User-facing event records
# ============================================================================
#
# | Column                | Type                       | Constraints              |
# |-----------------------|----------------------------|--------------------------|
# | id                    | VARCHAR(36)                | PRIMARY KEY (uuid)       |
# | user_id               | VARCHAR(36)                | NOT NULL, INDEX          |
# | title                 | VARCHAR(255)               | NOT NULL                 |
# | message               | TEXT                       | NULLABLE                 |
# | type                  | ENUM(NotificationType)     | NOT NULL, DEFAULT 'info' |
# | category              | ENUM(NotificationCategory) | NOT NULL                 |
# | read                  | BOOLEAN                    | NOT NULL, DEFAULT FALSE  |
# | related_id            | VARCHAR(64)                | NULLABLE (e.g. job_id)   |
# | related_type          | VARCHAR(50)                | NULLABLE                 |
# | action_url            | TEXT                       | NULLABLE                 |
# | notification_metadata | JSON                       | DEFAULT {}               |
# | created_at            | TIMESTAMP(TZ)              | NOT NULL, DEFAULT now()  |
# | updated_at            | TIMESTAMP(TZ)              | NOT NULL, DEFAULT now()  |
#
# Enums:
#   NotificationType:     'info' | 'success' | 'warning' | 'error'
#   NotificationCategory: 'lecture' | 'upload' | 'system' | 'general'


# ============================================================================
# PROFILES / USAGE - Billing state and monthly counters
# ============================================================================
#
# profiles
# | Column                    | Type                   | Constraints          |
# |---------------------------|------------------------|----------------------|
# | id                        | VARCHAR(36)            | PRIMARY KEY (user)   |
# | email                     | VARCHAR(255)           | NULLABLE, INDEX      |
# | subscription_tier         | ENUM(SubscriptionTier) | DEFAULT 'free'       |
# | stripe_customer_id        | VARCHAR(255)           | NULLABLE, INDEX      |
# | stripe_subscription_id    | VARCHAR(255)           | NULLABLE             |
# | subscription_period_start | TIMESTAMP(TZ)          | NULLABLE             |
# | subscription_period_end   | TIMESTAMP(TZ)          | NULLABLE             |
#
# usage
# | Column          | Type        | Constraints              |
# |-----------------|-------------|--------------------------|
# | user_id         | VARCHAR(36) | PRIMARY KEY              |
# | month_year      | VARCHAR(7)  | PRIMARY KEY ('YYYY-MM')  |
# | summaries_count | INTEGER     | NOT NULL, DEFAULT 0      |
# | total_minutes   | INTEGER     | NOT NULL, DEFAULT 0      |


# ============================================================================
# STORAGE LAYOUT
# ============================================================================
#
# | Bucket          | Key                                        | Written by      |
# |-----------------|--------------------------------------------|-----------------|
# | user-uploads    | {user_id}/... (audio, supplementary PDF)    | web client      |
# | generated-notes | {user_id}/{ms}_{title}.pdf / .md / .txt    | generate        |
# | generated-notes | {user_id}/summaries/{job_id}_notes.pdf     | regenerate-pdf  |
#
# Titles in keys keep [A-Za-z0-9]; everything else becomes '_'.


# ============================================================================
# ER DIAGRAM (Text)
# ============================================================================
#
#  ┌──────────────┐
#  │ study_nodes  │◄─────┐ parent_id (self, CASCADE)
#  ├──────────────┤      │
#  │ id (PK)      │──────┘
#  │ user_id      │
#  │ name / type  │
#  │ is_pinned    │
#  └──────────────┘
#         │ 1:N (SET NULL)
#         ▼
#  ┌──────────────┐
#  │     jobs     │
#  ├──────────────┤
#  │ job_id (PK)  │───────────────────────┐
#  │ user_id      │                       │
#  │ status       │                       │
#  │ file paths   │                       │
#  │ timestamps   │                       │
#  └──────────────┘                       │
#                                         │ 1:N (CASCADE)
#  ┌──────────────┐                       │
#  │    notes     │◄──────────────────────┘
#  ├──────────────┤
#  │ id (PK)      │
#  │ job_id (FK)  │
#  │ legacy cols  │
#  │ current cols │
#  └──────────────┘
