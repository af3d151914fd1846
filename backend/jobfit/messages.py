"""User-facing strings, keyed by locale. Unknown locales fall back to English."""

MESSAGES = {
    "en": {
        "file_too_large": "File exceeds the 10 MB size limit.",
        "format_not_supported": "Format not supported. Upload a PDF, DOCX, JPG or PNG file.",
        "docx_corrupt": "Could not read the DOCX file. Check that it is not damaged.",
        "ocr_failed": "Could not read text from the image. Use a sharp, high-quality image.",
        "extraction_failed": "Could not extract text from the file.",
        "job_not_found": "Job not found.",
        "timeout": "AI response took too long. Try again or use demo mode.",
        "scorer_failed": "AI scoring failed. Switching to demo mode.",
        "uploading": "Uploading CV to the server...",
        "processing_file": "Processing CV file...",
        "ai_analysis": "Analyzing CV with Gemini AI...",
        "building_report": "Building detailed report...",
        "awaiting_score": "Receiving results from AI...",
        "finalizing": "Analysis complete!",
        "demo_scoring": "Scoring in demo mode...",
        "done": "Done",
        "sparse_text": "Very little text was found in the file. The score may be unreliable.",
    },
    "vi": {
        "file_too_large": "File vượt quá giới hạn 10 MB.",
        "format_not_supported": "Định dạng không được hỗ trợ. Hãy tải lên PDF, DOCX, JPG hoặc PNG.",
        "docx_corrupt": "Không thể đọc file DOCX. Vui lòng kiểm tra file có bị hỏng không.",
        "ocr_failed": "Không thể nhận diện text từ ảnh. Vui lòng sử dụng ảnh rõ nét và chất lượng cao.",
        "extraction_failed": "Không thể trích xuất nội dung từ file.",
        "job_not_found": "Không tìm thấy công việc.",
        "timeout": "AI phản hồi quá lâu. Vui lòng thử lại hoặc sử dụng chế độ demo.",
        "scorer_failed": "Chấm điểm AI thất bại. Đang chuyển sang chế độ demo.",
        "uploading": "Đang tải CV lên server...",
        "processing_file": "Đang xử lý file CV...",
        "ai_analysis": "Đang phân tích CV với Gemini AI...",
        "building_report": "Đang tạo báo cáo chi tiết...",
        "awaiting_score": "Đang nhận kết quả từ AI...",
        "finalizing": "Hoàn thành phân tích!",
        "demo_scoring": "Đang chấm điểm ở chế độ demo...",
        "done": "Hoàn thành",
        "sparse_text": "Tìm thấy rất ít nội dung trong file. Kết quả chấm điểm có thể không chính xác.",
    },
}


def message(key: str, locale: str = "en") -> str:
    table = MESSAGES.get(locale, MESSAGES["en"])
    return table.get(key) or MESSAGES["en"][key]
